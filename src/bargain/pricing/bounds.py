"""Session price bounds and money rounding.

All monetary calculations use Decimal arithmetic to avoid floating-point errors.
Prices are whole currency units: base and counter prices round half-up, the
floor rounds up so rounding can never push it below the configured minimum.
"""

from decimal import ROUND_CEILING, ROUND_HALF_UP, Decimal

from pydantic import BaseModel

from bargain.domain.models import NegotiationRule
from bargain.domain.types import UserSegment

WHOLE_UNITS = Decimal("1")
HUNDRED = Decimal("100")
# Largest price accepted from a buyer or a decision backend.
MAX_PRICE = Decimal("1000000000000")


def round_price(value: Decimal) -> Decimal:
    """Round a price to the nearest whole currency unit (half-up)."""
    return value.quantize(WHOLE_UNITS, rounding=ROUND_HALF_UP)


def ceil_price(value: Decimal) -> Decimal:
    """Round a price up to the next whole currency unit."""
    return value.quantize(WHOLE_UNITS, rounding=ROUND_CEILING)


class PriceBounds(BaseModel, frozen=True):
    """Immutable price window for one session.

    Attributes:
        base_price: List price for the requested quantity.
        floor_price: Lowest price the seller accepts for that quantity.
        max_discount_pct: The discount ceiling that produced the floor.
    """

    base_price: Decimal
    floor_price: Decimal
    max_discount_pct: Decimal


def effective_max_discount_pct(rule: NegotiationRule, segment: UserSegment) -> Decimal:
    """Return the larger of the rule's discount ceiling and the segment's."""
    override = rule.segment_ceiling(segment)
    if override is None:
        return rule.max_discount_pct
    return max(rule.max_discount_pct, override)


def compute_bounds(rule: NegotiationRule, segment: UserSegment, quantity: int) -> PriceBounds:
    """Compute base and floor price for *quantity* units under *rule*.

    ``floor = max(min_price * quantity, base * (1 - pct / 100))``, capped at
    the base price so ``floor <= base`` always holds.

    Args:
        rule: The SKU's negotiation rule (per-unit prices).
        segment: The buyer's segment, for the per-segment ceiling.
        quantity: Number of units, at least one.

    Returns:
        The session's ``PriceBounds``.

    Raises:
        ValueError: If quantity is not positive.
    """
    if quantity < 1:
        raise ValueError(f"quantity must be positive, got {quantity}")

    pct = effective_max_discount_pct(rule, segment)
    qty = Decimal(quantity)
    base = round_price(rule.base_price * qty)
    discounted = base * (1 - pct / HUNDRED)
    floor = ceil_price(max(rule.min_price * qty, discounted))
    return PriceBounds(
        base_price=base,
        floor_price=min(floor, base),
        max_discount_pct=pct,
    )
