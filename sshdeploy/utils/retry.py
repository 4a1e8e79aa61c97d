"""
Bounded retry loop for network operations
"""
import time
from typing import Callable, Optional, TypeVar

T = TypeVar("T")


def retry_call(fn: Callable[[], T], *, attempts: int, delay: float,
               sleep: Callable[[float], None] = time.sleep,
               on_error: Optional[Callable[[int, Exception], None]] = None) -> T:
    """
    Call fn() up to `attempts` times with a fixed `delay` between tries.

    on_error(attempt, exc) is called after every failed attempt. The last
    exception is re-raised when all attempts are used up.
    """
    if attempts < 1:
        raise ValueError("attempts must be >= 1")
    for attempt in range(1, attempts + 1):
        try:
            return fn()
        except Exception as exc:
            if on_error is not None:
                on_error(attempt, exc)
            if attempt == attempts:
                raise
            sleep(delay)
    raise AssertionError("unreachable")
