"""Tests for the YAML-backed catalog collaborators."""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path

import pytest
from pydantic import ValidationError

from bargain.catalog.config_store import ConfigCatalog, load_catalog_config
from bargain.catalog.models import CatalogConfig, FeatureFlag
from bargain.domain.models import LocalizedText, NegotiationRule
from bargain.domain.types import UserSegment


def _rule(sku: str, priority: int = 0, base: str = "1000") -> NegotiationRule:
    return NegotiationRule(
        sku=sku,
        product_name=LocalizedText(en=sku),
        base_price=Decimal(base),
        min_price=Decimal("500"),
        priority=priority,
    )


class TestLoadCatalogConfig:
    """Loading and validating the YAML file."""

    def test_loads_rules_and_order_counts(self, catalog_yaml: Path) -> None:
        config = load_catalog_config(catalog_yaml)

        assert [r.sku for r in config.rules] == ["PHONE-X1", "SPEAKER-MINI"]
        assert config.rules[0].product_name.rw == "Telefoni X1"
        assert config.rules[0].base_price == Decimal("100000")
        assert config.order_counts == {"alice": 7}

    def test_missing_file_is_empty(self, tmp_path: Path) -> None:
        assert load_catalog_config(tmp_path / "absent.yaml") == CatalogConfig()

    def test_empty_file_is_empty(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_catalog_config(path).rules == []

    def test_float_price_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text(
            "rules:\n"
            "  - sku: X\n"
            "    product_name: {en: X}\n"
            "    base_price: 100.5\n"
            "    min_price: 50\n"
        )
        with pytest.raises(ValidationError):
            load_catalog_config(path)


class TestConfigCatalog:
    """The in-memory collaborator implementations."""

    def test_highest_priority_rule_wins(self) -> None:
        catalog = ConfigCatalog(
            CatalogConfig(
                rules=[_rule("X", priority=5, base="2000"), _rule("X", priority=1, base="1500")]
            )
        )
        rule = catalog.get_rule("X")
        assert rule is not None
        assert rule.base_price == Decimal("2000")

    def test_list_rules_sorted_by_sku(self) -> None:
        catalog = ConfigCatalog(CatalogConfig(rules=[_rule("B"), _rule("A")]))
        assert [r.sku for r in catalog.list_rules()] == ["A", "B"]

    def test_unknown_lookups(self) -> None:
        catalog = ConfigCatalog(CatalogConfig())
        assert catalog.get_rule("X") is None
        assert catalog.get_product("X") is None

    def test_segment_from_order_counts(self, catalog_yaml: Path) -> None:
        catalog = ConfigCatalog.from_yaml(catalog_yaml)
        assert catalog.segment_for("alice") == UserSegment.VIP
        assert catalog.segment_for("stranger") == UserSegment.NEW

    def test_flag_absent_means_enabled(self) -> None:
        assert ConfigCatalog(CatalogConfig()).is_enabled("u1", "X", UserSegment.NEW)

    def test_flag_targets_skus(self) -> None:
        catalog = ConfigCatalog(
            CatalogConfig(
                feature_flags=[FeatureFlag(name="ai_negotiation", target_skus=["PHONE-X1"])]
            )
        )
        assert catalog.is_enabled("u1", "PHONE-X1", UserSegment.NEW)
        assert not catalog.is_enabled("u1", "SPEAKER-MINI", UserSegment.NEW)
