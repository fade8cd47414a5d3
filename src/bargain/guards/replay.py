"""Per-session dedupe of repeated offer values."""

from __future__ import annotations

import hashlib
import threading
from decimal import Decimal
from typing import Protocol


def offer_digest(offer: Decimal) -> str:
    """Hash the numeric value of an offer (``80000`` and ``80000.00`` collide)."""
    canonical = format(offer.normalize(), "f")
    return hashlib.sha256(canonical.encode()).hexdigest()


class ReplayStore(Protocol):
    def contains(self, session_id: str, digest: str) -> bool: ...

    def add(self, session_id: str, digest: str) -> None: ...

    def discard(self, session_id: str) -> None: ...


class InMemoryReplayStore:
    """Process-local ``ReplayStore``."""

    def __init__(self) -> None:
        self._seen: dict[str, set[str]] = {}
        self._lock = threading.Lock()

    def contains(self, session_id: str, digest: str) -> bool:
        with self._lock:
            return digest in self._seen.get(session_id, set())

    def add(self, session_id: str, digest: str) -> None:
        with self._lock:
            self._seen.setdefault(session_id, set()).add(digest)

    def discard(self, session_id: str) -> None:
        with self._lock:
            self._seen.pop(session_id, None)


class ReplayGuard:
    """Reject an offer value already seen in the same session.

    Checking and recording are separate so an offer is only remembered once
    the round it produced has been committed; a failed save can then be
    retried with the same value.
    """

    def __init__(self, store: ReplayStore) -> None:
        self._store = store

    def is_replay(self, session_id: str, offer: Decimal) -> bool:
        return self._store.contains(session_id, offer_digest(offer))

    def record(self, session_id: str, offer: Decimal) -> None:
        self._store.add(session_id, offer_digest(offer))

    def forget(self, session_id: str) -> None:
        """Drop every digest of a session that can take no more offers."""
        self._store.discard(session_id)
