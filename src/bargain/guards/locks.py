"""Keyed in-process locks serialising work on one session.

Process-local only: the store's version check covers writers in other
processes.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class SessionLocks:
    """One lock per key, created on demand and dropped when unused."""

    def __init__(self, timeout_s: float | None = 10.0) -> None:
        self._timeout_s = timeout_s
        self._guard = threading.Lock()
        self._locks: dict[str, tuple[threading.Lock, int]] = {}

    def _acquire_entry(self, key: str) -> threading.Lock:
        with self._guard:
            lock, users = self._locks.get(key, (threading.Lock(), 0))
            self._locks[key] = (lock, users + 1)
            return lock

    def _release_entry(self, key: str) -> None:
        with self._guard:
            lock, users = self._locks[key]
            if users <= 1:
                del self._locks[key]
            else:
                self._locks[key] = (lock, users - 1)

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        """Hold the lock for *key* for the duration of the block.

        Raises:
            TimeoutError: If the lock could not be taken within the timeout.
        """
        lock = self._acquire_entry(key)
        try:
            if self._timeout_s is None:
                acquired = lock.acquire()
            else:
                acquired = lock.acquire(timeout=max(self._timeout_s, 0.0))
            if not acquired:
                raise TimeoutError(f"Timed out waiting for session lock {key}")
            try:
                yield
            finally:
                lock.release()
        finally:
            self._release_entry(key)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
