from __future__ import annotations

import threading
import time
import typing as t


def format_elapsed(seconds: int) -> str:
    hrs = seconds // 3600
    mins = (seconds % 3600) // 60
    secs = seconds % 60
    return f"{hrs:02d}:{mins:02d}:{secs:02d}"


class StudyTimer:
    """Elapsed study time in whole seconds, counting only while started."""

    def __init__(self, clock: t.Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._accumulated = 0.0
        self._started_at: float | None = None

    @property
    def running(self) -> bool:
        return self._started_at is not None

    def start(self) -> None:
        with self._lock:
            if self._started_at is None:
                self._started_at = self._clock()

    def pause(self) -> None:
        with self._lock:
            if self._started_at is not None:
                self._accumulated += self._clock() - self._started_at
                self._started_at = None

    def reset(self) -> None:
        with self._lock:
            self._accumulated = 0.0
            self._started_at = None

    def elapsed(self) -> int:
        with self._lock:
            total = self._accumulated
            if self._started_at is not None:
                total += self._clock() - self._started_at
        return int(total)

    def to_dict(self) -> dict[str, t.Any]:
        seconds = self.elapsed()
        return {"running": self.running, "seconds": seconds, "display": format_elapsed(seconds)}
