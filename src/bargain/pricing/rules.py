"""Conservative default rules for SKUs that have no configured rule.

The defaults follow the storefront's historical behaviour: a quarter off
list at most, three rounds, and every fallback perk switched on.
"""

from decimal import ROUND_FLOOR, Decimal

from bargain.catalog.models import Product
from bargain.domain.models import (
    ExtendedWarrantyPerk,
    FallbackPerks,
    FreeGiftPerk,
    FreeShippingPerk,
    LocalizedText,
    NegotiationRule,
    SegmentRule,
)
from bargain.domain.types import UserSegment
from bargain.pricing.bounds import WHOLE_UNITS, round_price

DEFAULT_MAX_DISCOUNT_PCT = Decimal("25")
DEFAULT_MIN_PRICE_RATIO = Decimal("0.75")
DEFAULT_MAX_ROUNDS = 3
DEFAULT_STOCK_LEVEL = 100

# New buyers get less room, VIPs a little more, within hard limits.
NEW_SEGMENT_DELTA = Decimal("8")
NEW_SEGMENT_MIN_PCT = Decimal("10")
VIP_SEGMENT_DELTA = Decimal("3")
VIP_SEGMENT_MAX_PCT = Decimal("40")


def default_segment_rules(max_discount_pct: Decimal) -> list[SegmentRule]:
    """Derive per-segment ceilings from the product-level ceiling."""
    return [
        SegmentRule(
            segment=UserSegment.NEW,
            max_discount_pct=max(max_discount_pct - NEW_SEGMENT_DELTA, NEW_SEGMENT_MIN_PCT),
            max_purchase_count=0,
        ),
        SegmentRule(
            segment=UserSegment.RETURNING,
            max_discount_pct=max_discount_pct,
            min_purchase_count=1,
            max_purchase_count=4,
        ),
        SegmentRule(
            segment=UserSegment.VIP,
            max_discount_pct=min(max_discount_pct + VIP_SEGMENT_DELTA, VIP_SEGMENT_MAX_PCT),
            min_purchase_count=5,
        ),
    ]


def synthesize_default_rule(product: Product) -> NegotiationRule:
    """Build a negotiation rule from catalog data alone.

    Args:
        product: The catalog entry for the SKU.

    Returns:
        An enabled ``NegotiationRule`` with conservative bounds.
    """
    base = round_price(product.price)
    if product.min_bargain_price is not None:
        min_price = min(product.min_bargain_price, base)
    else:
        min_price = (base * DEFAULT_MIN_PRICE_RATIO).quantize(WHOLE_UNITS, rounding=ROUND_FLOOR)

    pct = (
        product.max_bargain_discount
        if product.max_bargain_discount is not None
        else DEFAULT_MAX_DISCOUNT_PCT
    )
    stock = product.stock_level if product.stock_level is not None else DEFAULT_STOCK_LEVEL

    return NegotiationRule(
        sku=product.sku,
        product_name=LocalizedText(en=product.name),
        base_price=base,
        min_price=min_price,
        max_discount_pct=pct,
        max_rounds=DEFAULT_MAX_ROUNDS,
        clearance_flag=product.is_on_clearance,
        stock_level=stock,
        segment_rules=default_segment_rules(pct),
        fallback_perks=FallbackPerks(
            free_shipping=FreeShippingPerk(enabled=True),
            free_gift=FreeGiftPerk(
                enabled=True,
                gift_description=LocalizedText(en="Free gift", rw="Impano y'ubuntu"),
            ),
            extended_warranty=ExtendedWarrantyPerk(enabled=True, months=12),
        ),
    )
