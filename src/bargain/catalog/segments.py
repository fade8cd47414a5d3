"""Buyer segment resolution from purchase history."""

from __future__ import annotations

import structlog

from bargain.catalog.interfaces import PurchaseHistory
from bargain.domain.types import UserSegment

logger = structlog.get_logger()

VIP_ORDER_COUNT = 5

# Test and partner accounts carry their segment in the id.
_PREFIXES: dict[str, UserSegment] = {
    "vip_": UserSegment.VIP,
    "new_": UserSegment.NEW,
}


def segment_from_order_count(order_count: int) -> UserSegment:
    """Classify a buyer by completed orders: none, a few, or many."""
    if order_count <= 0:
        return UserSegment.NEW
    if order_count >= VIP_ORDER_COUNT:
        return UserSegment.VIP
    return UserSegment.RETURNING


def resolve_segment(
    history: PurchaseHistory | None,
    user_id: str,
    default: UserSegment,
) -> UserSegment:
    """Resolve the buyer's segment without ever blocking the negotiation.

    Args:
        history: Purchase history collaborator, or ``None`` if not wired.
        user_id: The buyer's identity.
        default: Segment used when the lookup is unavailable.

    Returns:
        The buyer's segment.
    """
    for prefix, segment in _PREFIXES.items():
        if user_id.startswith(prefix):
            return segment

    if history is None:
        return default

    try:
        return history.segment_for(user_id)
    except Exception:
        logger.warning("segment_lookup_failed", user_id=user_id, default=default, exc_info=True)
        return default
