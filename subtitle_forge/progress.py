"""Progress extraction from converter output and the elapsed-time ticker."""

import re
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

FRAME_PATTERN = re.compile(r"Processing frame (\d+)/(\d+)")
STATUS_PATTERN = re.compile(r"Status: (.+)")

# Weight of the previous rate in the smoothed frames-per-second estimate.
RATE_SMOOTHING = 0.7


@dataclass(frozen=True)
class ProgressUpdate:
    current: Optional[int] = None
    total: Optional[int] = None
    status: Optional[str] = None

    @property
    def fraction(self) -> Optional[float]:
        if self.current is None or not self.total:
            return None
        return min(1.0, self.current / self.total)


class ProgressParser:
    """Recognise frame counters and status lines in converter output.

    Lines that match nothing are ignored; progress simply stays
    indeterminate.  Safe to feed from the stdout and stderr reader threads
    at the same time.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self.current_frame = 0
        self.total_frames = 0
        self.frame_rate = 0.0
        self.status: Optional[str] = None
        self._last_update = clock()

    def feed(self, line: str) -> Optional[ProgressUpdate]:
        match = FRAME_PATTERN.search(line)
        if match:
            return self._frame(int(match.group(1)), int(match.group(2)))
        match = STATUS_PATTERN.search(line)
        if match:
            status = match.group(1).strip()
            with self._lock:
                self.status = status
            return ProgressUpdate(status=status)
        return None

    def _frame(self, current: int, total: int) -> ProgressUpdate:
        now = self._clock()
        with self._lock:
            if self.total_frames == 0:
                self.total_frames = total
            if self.current_frame > 0:
                elapsed = now - self._last_update
                advanced = current - self.current_frame
                if elapsed > 0 and advanced > 0:
                    sample = advanced / elapsed
                    if self.frame_rate > 0:
                        self.frame_rate = (
                            self.frame_rate * RATE_SMOOTHING + sample * (1 - RATE_SMOOTHING)
                        )
                    else:
                        self.frame_rate = sample
            self.current_frame = current
            self._last_update = now
            return ProgressUpdate(current=current, total=self.total_frames)

    @property
    def fraction(self) -> Optional[float]:
        with self._lock:
            if self.total_frames <= 0 or self.current_frame <= 0:
                return None
            return min(1.0, self.current_frame / self.total_frames)

    def eta(self) -> Optional[float]:
        """Projected seconds remaining, or None while still indeterminate."""
        with self._lock:
            if self.total_frames <= 0 or self.current_frame <= 0 or self.frame_rate <= 0:
                return None
            return max(0, self.total_frames - self.current_frame) / self.frame_rate


def format_duration(seconds: Optional[float]) -> str:
    if seconds is None:
        return "calculating..."
    seconds = int(round(seconds))
    hours, rem = divmod(seconds, 3600)
    minutes, seconds = divmod(rem, 60)
    if hours:
        return f"{hours}h {minutes}m {seconds}s"
    if minutes:
        return f"{minutes}m {seconds}s"
    return f"{seconds}s"


class ElapsedTicker:
    """Call *callback(elapsed_seconds)* every *interval* seconds until stopped.

    Used as a context manager so the timer stops as soon as the owning task
    leaves the ``with`` block, whatever way it leaves.
    """

    def __init__(
        self,
        callback: Callable[[float], None],
        interval: float = 0.5,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.callback = callback
        self.interval = interval
        self._clock = clock
        self._stopped = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.started_at = 0.0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> "ElapsedTicker":
        self.started_at = self._clock()
        self._thread = threading.Thread(target=self._run, name="elapsed-ticker", daemon=True)
        self._thread.start()
        return self

    def _run(self) -> None:
        while not self._stopped.wait(self.interval):
            self.callback(self._clock() - self.started_at)

    def stop(self) -> None:
        self._stopped.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join()

    def __enter__(self) -> "ElapsedTicker":
        return self.start()

    def __exit__(self, *exc_info) -> None:
        self.stop()
