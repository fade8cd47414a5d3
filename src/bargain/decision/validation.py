"""Deterministic clamp applied to every decision before it touches a session.

Decisions from the reasoning backend are untrusted input; the deterministic
negotiator's output goes through the same gate so both variants obey the
same guarantees:

- counter prices are whole currency units
- a ``counter``/``final`` price is strictly above the buyer's offer
- a ``counter``/``final`` price lies within ``[floor_price, base_price]``
- an ``accept`` echoes the buyer's offer and is never below the floor
"""

from __future__ import annotations

from decimal import Decimal

import structlog

from bargain.domain.models import Decision, DecisionContext
from bargain.domain.types import DecisionStatus
from bargain.pricing.bounds import round_price

logger = structlog.get_logger()

# Minimum step above the buyer's offer when a counter has to be repaired.
COUNTER_STEP = Decimal("1.05")


def repair_counter_price(offer_price: Decimal, floor_price: Decimal) -> Decimal:
    """Return the smallest acceptable counter for an offer the backend undercut."""
    return max(floor_price, round_price(offer_price * COUNTER_STEP))


def _open_status(context: DecisionContext) -> DecisionStatus:
    if context.current_round >= context.max_rounds - 1:
        return DecisionStatus.FINAL
    return DecisionStatus.COUNTER


def clamp_decision(decision: Decision, context: DecisionContext) -> Decision:
    """Normalise *decision* against the round's price bounds.

    Args:
        decision: The decision as produced by a provider.
        context: The context it was produced for.

    Returns:
        A new ``Decision`` satisfying every price guarantee.
    """
    offer = context.offer_price
    floor = context.floor_price
    base = context.base_price
    status = decision.status
    counter = round_price(decision.counter_price) if decision.counter_price is not None else None

    if status == DecisionStatus.ACCEPT:
        if offer >= floor:
            counter = offer
        elif context.is_last_round:
            logger.warning("accept_below_floor_rejected", sku=context.sku, offer=str(offer))
            status = DecisionStatus.REJECT
            counter = None
        else:
            logger.warning("accept_below_floor_countered", sku=context.sku, offer=str(offer))
            status = _open_status(context)
            counter = floor

    elif status in (DecisionStatus.COUNTER, DecisionStatus.FINAL):
        if counter is None or counter <= offer:
            logger.warning(
                "counter_not_above_offer",
                sku=context.sku,
                counter=None if counter is None else str(counter),
                offer=str(offer),
            )
            counter = repair_counter_price(offer, floor)
        counter = min(max(counter, floor), base)
        if counter <= offer:
            # Only reachable when the offer already meets the base price.
            status = DecisionStatus.ACCEPT
            counter = offer
        elif status == DecisionStatus.COUNTER and context.current_round >= context.max_rounds - 1:
            status = DecisionStatus.FINAL

    elif counter is not None:
        counter = min(max(counter, floor), base)

    return decision.model_copy(update={"status": status, "counter_price": counter})
