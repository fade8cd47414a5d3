"""Feature flag evaluation for negotiation availability."""

from __future__ import annotations

from bargain.catalog.models import FeatureFlag

ALL_SEGMENTS = "all"


def rollout_bucket(user_id: str) -> int:
    """Map a user id to a stable bucket in ``[0, 100)``."""
    return sum(ord(c) for c in user_id) % 100


def is_flag_enabled_for(flag: FeatureFlag | None, user_id: str, sku: str, segment: str) -> bool:
    """Evaluate *flag* for one (user, sku, segment) triple.

    An absent flag means the feature is on.  Targeting lists only restrict
    when they are non-empty, and ``"all"`` in ``target_segments`` matches
    every segment.

    Args:
        flag: The flag definition, or ``None`` when it is not configured.
        user_id: The buyer's identity (drives the rollout bucket).
        sku: The product being negotiated.
        segment: The buyer's segment.

    Returns:
        True if negotiation is enabled for this caller.
    """
    if flag is None:
        return True
    if not flag.enabled:
        return False
    if flag.target_skus and sku not in flag.target_skus:
        return False
    if (
        flag.target_segments
        and ALL_SEGMENTS not in flag.target_segments
        and segment not in flag.target_segments
    ):
        return False
    if flag.rollout_percentage < 100:
        return rollout_bucket(user_id) < flag.rollout_percentage
    return True
