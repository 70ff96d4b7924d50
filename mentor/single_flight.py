from __future__ import annotations

import contextlib
import threading
import typing as t

from mentor.errors import RequestInFlightError


class SingleFlight:
    """At most one in-flight call per action key; extra triggers are rejected."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._in_flight: set[str] = set()

    def busy(self, key: str) -> bool:
        with self._lock:
            return key in self._in_flight

    @contextlib.contextmanager
    def guard(self, key: str) -> t.Iterator[None]:
        with self._lock:
            if key in self._in_flight:
                raise RequestInFlightError(key)
            self._in_flight.add(key)
        try:
            yield
        finally:
            with self._lock:
                self._in_flight.discard(key)
