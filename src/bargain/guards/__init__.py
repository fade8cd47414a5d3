"""Anti-abuse guards: rate limiting, replay rejection, fraud heuristics, session locks."""

from bargain.guards.fraud import ActivityLookup, FraudHeuristics, has_high_severity
from bargain.guards.locks import SessionLocks
from bargain.guards.rate_limit import (
    InMemoryRateLimitStore,
    RateLimitDecision,
    RateLimiter,
    RateLimitStore,
)
from bargain.guards.replay import InMemoryReplayStore, ReplayGuard, ReplayStore, offer_digest

__all__ = [
    "ActivityLookup",
    "FraudHeuristics",
    "InMemoryRateLimitStore",
    "InMemoryReplayStore",
    "RateLimitDecision",
    "RateLimitStore",
    "RateLimiter",
    "ReplayGuard",
    "ReplayStore",
    "SessionLocks",
    "has_high_severity",
    "offer_digest",
]
