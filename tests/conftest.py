"""Shared pytest fixtures for the negotiation engine test suite."""

from __future__ import annotations

import sqlite3
from collections.abc import Callable, Iterator
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from pathlib import Path
from typing import Any

import pytest

from bargain.audit.logger import AuditLogger
from bargain.audit.store import init_audit_table
from bargain.catalog.config_store import ConfigCatalog
from bargain.catalog.models import CatalogConfig
from bargain.config import Settings, get_settings
from bargain.decision.provider import DecisionProvider
from bargain.domain.models import (
    BundlePair,
    DecisionContext,
    FallbackPerks,
    FreeShippingPerk,
    LocalizedText,
    NegotiationRule,
    NegotiationSession,
)
from bargain.domain.types import UserSegment
from bargain.engine import NegotiationEngine
from bargain.guards.fraud import FraudHeuristics
from bargain.guards.rate_limit import InMemoryRateLimitStore, RateLimiter
from bargain.guards.replay import InMemoryReplayStore, ReplayGuard
from bargain.state.schema import init_session_table, open_database
from bargain.state.store import SessionStore

START = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture(autouse=True)
def _clear_settings_cache() -> Iterator[None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def phone_rule() -> NegotiationRule:
    """A phone with list price 100,000 and a floor of 75,000."""
    return NegotiationRule(
        sku="PHONE-X1",
        product_name=LocalizedText(en="Smartphone X1", rw="Telefoni X1"),
        base_price=Decimal("100000"),
        min_price=Decimal("75000"),
        max_discount_pct=Decimal("25"),
        max_rounds=3,
        stock_level=40,
        bundle_pairs=[
            BundlePair(main_sku="PHONE-X1", bundle_sku="CASE-X1", bundle_price=Decimal("8000"))
        ],
        fallback_perks=FallbackPerks(free_shipping=FreeShippingPerk(enabled=True)),
    )


@pytest.fixture
def phone_context() -> Callable[..., DecisionContext]:
    """Factory for decision contexts over the phone's bounds."""

    def _make(**overrides: Any) -> DecisionContext:
        fields: dict[str, Any] = {
            "sku": "PHONE-X1",
            "product_name": LocalizedText(en="Smartphone X1", rw="Telefoni X1"),
            "base_price": Decimal("100000"),
            "floor_price": Decimal("75000"),
            "offer_price": Decimal("50000"),
            "current_round": 1,
            "max_rounds": 3,
            "user_segment": UserSegment.RETURNING,
            "stock_level": 40,
            "perks": FallbackPerks(free_shipping=FreeShippingPerk(enabled=True)),
        }
        fields.update(overrides)
        return DecisionContext(**fields)

    return _make


@pytest.fixture
def db_conn() -> Iterator[sqlite3.Connection]:
    """In-memory database with the session and audit tables."""
    conn = open_database(":memory:")
    init_session_table(conn)
    init_audit_table(conn)
    yield conn
    conn.close()


@pytest.fixture
def session_store(db_conn: sqlite3.Connection) -> SessionStore:
    return SessionStore(db_conn)


@pytest.fixture
def audit_logger(db_conn: sqlite3.Connection) -> AuditLogger:
    return AuditLogger(db_conn)


@pytest.fixture
def catalog(phone_rule: NegotiationRule) -> ConfigCatalog:
    return ConfigCatalog(CatalogConfig(rules=[phone_rule]))


@pytest.fixture
def make_engine(
    session_store: SessionStore,
    audit_logger: AuditLogger,
    catalog: ConfigCatalog,
    clock: FakeClock,
) -> Callable[..., NegotiationEngine]:
    """Factory for engines wired to the in-memory store and YAML-style catalog."""

    def _make(**overrides: Any) -> NegotiationEngine:
        kwargs: dict[str, Any] = {
            "store": session_store,
            "rules": catalog,
            "decisions": DecisionProvider(),
            "rate_limiter": RateLimiter(InMemoryRateLimitStore(), limit=10),
            "replay_guard": ReplayGuard(InMemoryReplayStore()),
            "fraud": FraudHeuristics(session_store),
            "catalog": catalog,
            "flags": catalog,
            "history": catalog,
            "audit": audit_logger,
            "clock": clock,
        }
        kwargs.update(overrides)
        return NegotiationEngine(**kwargs)

    return _make


@pytest.fixture
def engine(make_engine: Callable[..., NegotiationEngine]) -> NegotiationEngine:
    return make_engine()


CATALOG_YAML = """\
rules:
  - sku: PHONE-X1
    product_name:
      en: Smartphone X1
      rw: Telefoni X1
    base_price: 100000
    min_price: 75000
    max_discount_pct: 25
    max_rounds: 3
    stock_level: 40
    fallback_perks:
      free_shipping:
        enabled: true
  - sku: SPEAKER-MINI
    product_name:
      en: Mini Bluetooth Speaker
    base_price: 25000
    min_price: 20000
    max_discount_pct: 15
    max_rounds: 2
    stock_level: 8
    enabled: false
order_counts:
  alice: 7
"""


@pytest.fixture
def catalog_yaml(tmp_path: Path) -> Path:
    path = tmp_path / "negotiation.yaml"
    path.write_text(CATALOG_YAML, encoding="utf-8")
    return path


@pytest.fixture
def app_settings(tmp_path: Path, catalog_yaml: Path) -> Callable[..., Settings]:
    """Factory for settings pointing at a temporary database and catalog."""

    def _make(**overrides: Any) -> Settings:
        fields: dict[str, Any] = {
            "database_path": tmp_path / "negotiation.db",
            "catalog_config_path": catalog_yaml,
            "anthropic_api_key": "",
            "sentry_dsn": "",
            "catalog_url": "",
        }
        fields.update(overrides)
        return Settings(_env_file=None, **fields)  # type: ignore[call-arg]

    return _make


@pytest.fixture
def make_session() -> Callable[..., NegotiationSession]:
    """Factory for a fresh phone session created at ``START``."""

    def _make(**overrides: Any) -> NegotiationSession:
        fields: dict[str, Any] = {
            "session_id": "sess-1",
            "sku": "PHONE-X1",
            "user_id": "u1",
            "user_segment": UserSegment.RETURNING,
            "quantity": 1,
            "base_price": Decimal("100000"),
            "floor_price": Decimal("75000"),
            "max_rounds": 3,
            "created_at": START,
            "expires_at": START + timedelta(minutes=30),
            "ip_address": "10.0.0.1",
        }
        fields.update(overrides)
        return NegotiationSession(**fields)

    return _make
