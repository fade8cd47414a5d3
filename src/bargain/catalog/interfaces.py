"""Narrow lookups the engine consumes from its external collaborators.

Every collaborator is best-effort: the engine degrades to defaults when a
lookup raises, so implementations may simply let their errors propagate.
"""

from __future__ import annotations

from typing import Protocol

from bargain.catalog.models import Product
from bargain.domain.models import NegotiationRule
from bargain.domain.types import UserSegment


class RuleProvider(Protocol):
    def get_rule(self, sku: str) -> NegotiationRule | None: ...

    def list_rules(self) -> list[NegotiationRule]: ...


class Catalog(Protocol):
    def get_product(self, sku: str) -> Product | None: ...


class FeatureFlags(Protocol):
    def is_enabled(self, user_id: str, sku: str, segment: UserSegment) -> bool: ...


class PurchaseHistory(Protocol):
    def segment_for(self, user_id: str) -> UserSegment: ...
