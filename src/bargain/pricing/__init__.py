"""Price bounds and default rule synthesis.

Re-exports key functions and types for convenient access:
    from bargain.pricing import compute_bounds, synthesize_default_rule, PriceBounds
"""

from bargain.pricing.bounds import (
    MAX_PRICE,
    PriceBounds,
    ceil_price,
    compute_bounds,
    effective_max_discount_pct,
    round_price,
)
from bargain.pricing.rules import default_segment_rules, synthesize_default_rule

__all__ = [
    "MAX_PRICE",
    "PriceBounds",
    "ceil_price",
    "compute_bounds",
    "default_segment_rules",
    "effective_max_discount_pct",
    "round_price",
    "synthesize_default_rule",
]
