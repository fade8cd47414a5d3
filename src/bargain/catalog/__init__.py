"""External collaborators: rules, product catalog, feature flags, purchase history."""

from bargain.catalog.config_store import ConfigCatalog, load_catalog_config
from bargain.catalog.flags import is_flag_enabled_for, rollout_bucket
from bargain.catalog.http import HttpCatalog
from bargain.catalog.interfaces import Catalog, FeatureFlags, PurchaseHistory, RuleProvider
from bargain.catalog.models import AI_NEGOTIATION_FLAG, CatalogConfig, FeatureFlag, Product
from bargain.catalog.segments import resolve_segment, segment_from_order_count

__all__ = [
    "AI_NEGOTIATION_FLAG",
    "Catalog",
    "CatalogConfig",
    "ConfigCatalog",
    "FeatureFlag",
    "FeatureFlags",
    "HttpCatalog",
    "Product",
    "PurchaseHistory",
    "RuleProvider",
    "is_flag_enabled_for",
    "load_catalog_config",
    "resolve_segment",
    "rollout_bucket",
    "segment_from_order_count",
]
