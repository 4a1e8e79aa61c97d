"""
Bounded-parallelism job batches for uploads and deletions
"""
from concurrent.futures import (FIRST_COMPLETED, Executor, Future,
                                ThreadPoolExecutor, wait)
from typing import Callable, Optional


class BoundedBatch:
    """
    Runs jobs on an executor with at most `limit` of them in flight.

    submit() blocks while `limit` jobs are still running. A failing job does
    not cancel its siblings: join() waits for every submitted job and then
    re-raises the first failure in submission order.
    """

    def __init__(self, limit: int, executor: Optional[Executor] = None,
                 owns_executor: Optional[bool] = None):
        if limit < 1:
            raise ValueError("limit must be >= 1")
        self._limit = limit
        if owns_executor is None:
            owns_executor = executor is None
        self._owns_executor = owns_executor
        self._executor = executor or ThreadPoolExecutor(
            max_workers=limit, thread_name_prefix="sshdeploy")
        self._pending: set[Future] = set()
        self._submitted: list[Future] = []

    def submit(self, fn: Callable, *args, **kwargs) -> Future:
        while len(self._pending) > self._limit - 1:
            _, self._pending = wait(self._pending, return_when=FIRST_COMPLETED)
        future = self._executor.submit(fn, *args, **kwargs)
        self._pending.add(future)
        self._submitted.append(future)
        return future

    def join(self):
        wait(self._submitted)
        self._pending.clear()
        submitted, self._submitted = self._submitted, []
        for future in submitted:
            exc = future.exception()
            if exc is not None:
                raise exc

    def close(self):
        if self._owns_executor:
            self._executor.shutdown(wait=True)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


class SerialBatch:
    """Same interface as BoundedBatch, but runs each job immediately."""

    def submit(self, fn: Callable, *args, **kwargs):
        fn(*args, **kwargs)

    def join(self):
        pass

    def close(self):
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False


def make_batch(limit: int, single_thread: bool = False,
               executor_factory: Optional[Callable[[int], Executor]] = None):
    """Pick a serial or bounded batch for one phase of work."""
    if single_thread:
        return SerialBatch()
    executor = executor_factory(limit) if executor_factory else None
    return BoundedBatch(limit, executor, owns_executor=True)
