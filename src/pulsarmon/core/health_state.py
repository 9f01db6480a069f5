"""Process-wide record of the last observed cluster health.

The cluster monitor writes one ``(status, missing_brokers)`` pair per tick;
readiness probes and request handlers read it from any thread or coroutine.
Both fields change together under the write lock so a reader never sees a
status from one tick paired with a broker count from another.

No validation is done on ``set``: any status and any integer (including a
negative count) is stored as given.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager

from pulsarmon.core.types import ClusterStatusCode


class ReadWriteLock:
    """Shared-read / exclusive-write lock.

    Readers only wait while a writer holds or is waiting for the lock, so a
    steady stream of ``get`` calls cannot starve the monitor's ``set``.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            while self._writer or self._readers:
                self._cond.wait()
            self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class HealthState:
    """Last completed cluster verdict: overall status and offline broker count."""

    def __init__(self) -> None:
        self._lock = ReadWriteLock()
        self._status = ClusterStatusCode.UNKNOWN
        self._missing_brokers = 0

    def get(self) -> tuple[ClusterStatusCode, int]:
        """Return ``(status, missing_brokers)`` as one consistent pair."""
        with self._lock.read():
            return self._status, self._missing_brokers

    def set(self, status: ClusterStatusCode, missing_brokers: int) -> None:
        """Replace both fields atomically with respect to ``get``."""
        with self._lock.write():
            self._status = status
            self._missing_brokers = missing_brokers


# Shared instance for the process
cluster_health = HealthState()
