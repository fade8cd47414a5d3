"""Catalog collaborators backed by a YAML configuration file.

One file holds negotiation rules, products, feature flags and per-user
order counts.  ``ConfigCatalog`` implements every collaborator interface
over it and doubles as the in-memory implementation in tests.
"""

from __future__ import annotations

from pathlib import Path

import structlog
import yaml  # type: ignore[import-untyped]

from bargain.catalog.flags import is_flag_enabled_for
from bargain.catalog.models import AI_NEGOTIATION_FLAG, CatalogConfig, FeatureFlag, Product
from bargain.catalog.segments import segment_from_order_count
from bargain.domain.models import NegotiationRule
from bargain.domain.types import UserSegment

logger = structlog.get_logger()


def load_catalog_config(path: Path) -> CatalogConfig:
    """Load and validate the catalog YAML file.

    A missing file yields an empty configuration (the engine then relies on
    the HTTP catalog and default rules).

    Args:
        path: Path to the YAML file.

    Returns:
        The validated ``CatalogConfig``.

    Raises:
        yaml.YAMLError: If the file is not valid YAML.
        pydantic.ValidationError: If the content does not match the schema.
    """
    if not path.exists():
        logger.warning("catalog_config_missing", path=str(path))
        return CatalogConfig()

    raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    config = CatalogConfig.model_validate(raw)
    logger.info(
        "catalog_config_loaded",
        path=str(path),
        rules=len(config.rules),
        products=len(config.products),
        flags=len(config.feature_flags),
    )
    return config


class ConfigCatalog:
    """Rules, products, flags and purchase history from one ``CatalogConfig``.

    When several rules share a SKU the one with the highest ``priority``
    wins.
    """

    def __init__(self, config: CatalogConfig) -> None:
        self._rules: dict[str, NegotiationRule] = {}
        for rule in sorted(config.rules, key=lambda r: r.priority):
            self._rules[rule.sku] = rule
        self._products: dict[str, Product] = {p.sku: p for p in config.products}
        self._flags: dict[str, FeatureFlag] = {f.name: f for f in config.feature_flags}
        self._order_counts = dict(config.order_counts)

    @classmethod
    def from_yaml(cls, path: Path) -> ConfigCatalog:
        """Build a catalog from the YAML file at *path*."""
        return cls(load_catalog_config(path))

    # -- RuleProvider ---------------------------------------------------------

    def get_rule(self, sku: str) -> NegotiationRule | None:
        return self._rules.get(sku)

    def list_rules(self) -> list[NegotiationRule]:
        return sorted(self._rules.values(), key=lambda r: r.sku)

    # -- Catalog --------------------------------------------------------------

    def get_product(self, sku: str) -> Product | None:
        return self._products.get(sku)

    # -- FeatureFlags ---------------------------------------------------------

    def is_enabled(self, user_id: str, sku: str, segment: UserSegment) -> bool:
        flag = self._flags.get(AI_NEGOTIATION_FLAG)
        return is_flag_enabled_for(flag, user_id, sku, segment)

    # -- PurchaseHistory ------------------------------------------------------

    def segment_for(self, user_id: str) -> UserSegment:
        return segment_from_order_count(self._order_counts.get(user_id, 0))
