"""Fixed-window rate limiting of negotiation attempts per user.

Window state lives behind ``RateLimitStore`` so a process-local map and a
shared cache are interchangeable.  Windows reset lazily on the first
request after they close; ``purge`` drops closed ones so idle users do not
accumulate.
"""

from __future__ import annotations

import threading
from datetime import datetime, timedelta
from typing import Protocol

from pydantic import BaseModel


class RateWindow(BaseModel, frozen=True):
    """Attempts counted in the current window and when it closes."""

    count: int
    reset_at: datetime


class RateLimitDecision(BaseModel, frozen=True):
    """Outcome of one rate-limit check.

    Attributes:
        allowed: Whether the attempt may proceed.
        remaining: Attempts left in the window after this one.
        reset_at: Absolute time the window closes.
    """

    allowed: bool
    remaining: int
    reset_at: datetime


class RateLimitStore(Protocol):
    def get(self, key: str) -> RateWindow | None: ...

    def put(self, key: str, window: RateWindow) -> None: ...

    def purge(self, now: datetime) -> int: ...


class InMemoryRateLimitStore:
    """Process-local ``RateLimitStore``."""

    def __init__(self) -> None:
        self._windows: dict[str, RateWindow] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> RateWindow | None:
        with self._lock:
            return self._windows.get(key)

    def put(self, key: str, window: RateWindow) -> None:
        with self._lock:
            self._windows[key] = window

    def purge(self, now: datetime) -> int:
        """Remove windows that closed at or before *now*; return how many."""
        with self._lock:
            stale = [k for k, w in self._windows.items() if w.reset_at <= now]
            for key in stale:
                del self._windows[key]
            return len(stale)


class RateLimiter:
    """Cap negotiation attempts per user identity.

    A denied attempt does not count against the window.

    Args:
        store: Where window state is kept.
        limit: Attempts allowed per window.
        window: Window length.
    """

    def __init__(
        self,
        store: RateLimitStore,
        limit: int = 10,
        window: timedelta = timedelta(hours=1),
    ) -> None:
        if limit < 1:
            raise ValueError(f"limit must be positive, got {limit}")
        self._store = store
        self._limit = limit
        self._window = window
        self._lock = threading.Lock()

    @property
    def limit(self) -> int:
        return self._limit

    def purge(self, now: datetime) -> int:
        """Forget closed windows; a user with no window starts a fresh one."""
        with self._lock:
            return self._store.purge(now)

    def check(self, user_id: str, now: datetime) -> RateLimitDecision:
        """Count one attempt for *user_id* if the window still has room."""
        key = f"rate:{user_id}"
        with self._lock:
            current = self._store.get(key)
            if current is None or now >= current.reset_at:
                window = RateWindow(count=1, reset_at=now + self._window)
                self._store.put(key, window)
                return RateLimitDecision(
                    allowed=True, remaining=self._limit - 1, reset_at=window.reset_at
                )

            if current.count >= self._limit:
                return RateLimitDecision(allowed=False, remaining=0, reset_at=current.reset_at)

            window = RateWindow(count=current.count + 1, reset_at=current.reset_at)
            self._store.put(key, window)
            return RateLimitDecision(
                allowed=True,
                remaining=self._limit - window.count,
                reset_at=window.reset_at,
            )
