"""
Upload progress: shared byte counters and a once-per-second ETA line
"""
import threading
import time
from typing import Callable, Optional

from .. import config as _cfg
from ..utils.file_utils import format_byte_count
from ..utils.logging import clear_progress, progress


class ProgressTracker:
    """
    Counts uploaded bytes across concurrent uploads and, while started,
    prints "P% - done/total - N seconds remaining" every `interval` seconds.

    Nothing is printed until more than 2% of the bytes are uploaded, so
    the estimate has something to go on. stop() sets an event the reporter
    thread checks on every tick and clears the line.
    """

    def __init__(self, total_bytes: int, lock=None, enabled: bool = True,
                 interval: float = _cfg.PROGRESS_INTERVAL,
                 clock: Callable[[], float] = time.monotonic):
        self.total_bytes = total_bytes
        self.uploaded_bytes = 0
        self._lock = lock or threading.Lock()
        self._enabled = enabled
        self._interval = interval
        self._clock = clock
        self._start: Optional[float] = None
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # ── counters ───────────────────────────────────────────────────────────

    def add(self, delta: int):
        with self._lock:
            self.uploaded_bytes += delta

    def track_file(self, size: int) -> "FileProgress":
        return FileProgress(self, size)

    # ── reporting ──────────────────────────────────────────────────────────

    def render(self) -> Optional[str]:
        """Current progress line, or None while below the 2% threshold."""
        with self._lock:
            uploaded, total = self.uploaded_bytes, self.total_bytes
        if uploaded <= 0 or total <= 0 or uploaded <= total // 50:
            return None
        elapsed = self._clock() - (self._start if self._start is not None else self._clock())
        percent = round(uploaded * 100.0 / total)
        remaining = elapsed / uploaded * total - elapsed
        if remaining > 60:
            remaining_str = f"{remaining / 60:,.0f} minutes remaining"
        else:
            remaining_str = f"{remaining:,.0f} seconds remaining"
        return (f"{percent}% - {format_byte_count(uploaded)}/{format_byte_count(total)}"
                f" - {remaining_str}")

    def start(self):
        self._start = self._clock()
        self._stop.clear()
        if self._enabled:
            self._thread = threading.Thread(target=self._run, name="sshdeploy-progress",
                                            daemon=True)
            self._thread.start()

    def _run(self):
        while not self._stop.is_set():
            line = self.render()
            if line:
                progress(line)
            self._stop.wait(self._interval)
        clear_progress()

    def stop(self):
        self._stop.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()
        return False


class FileProgress:
    """Turns SFTP put() callbacks (cumulative offsets) into counter deltas."""

    def __init__(self, tracker: ProgressTracker, size: int):
        self._tracker = tracker
        self._size = size
        self._last = 0

    def __call__(self, transferred: int, _total: int = 0):
        delta, self._last = transferred - self._last, transferred
        self._tracker.add(delta)

    def finish(self):
        """Count the file as fully uploaded."""
        delta, self._last = self._size - self._last, self._size
        self._tracker.add(delta)
