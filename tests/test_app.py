"""Tests for application entry point: structlog config, service initialization, and app creation."""

from __future__ import annotations

import asyncio
import sqlite3
from collections.abc import Callable, Iterator
from decimal import Decimal
from typing import Any
from unittest.mock import MagicMock, patch

import pytest
import structlog
from fastapi import FastAPI
from fastapi.testclient import TestClient
from structlog_sentry import SentryProcessor

from bargain.app import (
    close_services,
    configure_logging,
    create_app,
    expire_sessions_periodically,
    initialize_services,
)
from bargain.catalog.http import HttpCatalog
from bargain.config import Settings
from bargain.engine import NegotiationEngine

SettingsFactory = Callable[..., Settings]


@pytest.fixture(autouse=True)
def _reset_structlog() -> Iterator[None]:
    """Reset structlog so cached loggers don't leak between tests."""
    structlog.reset_defaults()
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


@pytest.fixture
def services(app_settings: SettingsFactory) -> Iterator[dict[str, Any]]:
    services = initialize_services(app_settings())
    yield services
    close_services(services)


class TestConfigureLogging:
    """Tests for structlog configuration in dev and production modes."""

    def test_development_mode_uses_console_renderer(self) -> None:
        configure_logging(production=False)
        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)

    def test_production_mode_uses_json_renderer(self) -> None:
        configure_logging(production=True)
        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.processors.JSONRenderer)

    def test_sentry_processor_only_when_enabled(self) -> None:
        configure_logging(production=True)
        assert not any(
            isinstance(p, SentryProcessor) for p in structlog.get_config()["processors"]
        )

        configure_logging(production=True, sentry_enabled=True)
        processors = structlog.get_config()["processors"]
        assert any(isinstance(p, SentryProcessor) for p in processors)
        assert isinstance(processors[-1], structlog.processors.JSONRenderer)

    def test_binds_service_name(self) -> None:
        configure_logging()
        assert structlog.contextvars.get_contextvars()["service"] == "bargain"


class TestInitializeServices:
    """Tests for initialize_services wiring."""

    def test_core_services_present(self, services: dict[str, Any]) -> None:
        for key in ("db_conn", "session_store", "audit_logger", "config_catalog", "engine"):
            assert key in services
        assert isinstance(services["engine"], NegotiationEngine)
        assert "http_catalog" not in services

    def test_database_file_created(
        self, app_settings: SettingsFactory, services: dict[str, Any]
    ) -> None:
        assert app_settings().database_path.exists()

    def test_catalog_loaded_from_yaml(self, services: dict[str, Any]) -> None:
        rule = services["config_catalog"].get_rule("PHONE-X1")
        assert rule is not None
        assert rule.max_rounds == 3

    def test_http_catalog_when_url_configured(self, app_settings: SettingsFactory) -> None:
        services = initialize_services(app_settings(catalog_url="http://catalog.test"))
        try:
            assert isinstance(services["http_catalog"], HttpCatalog)
        finally:
            close_services(services)

    def test_reasoning_backend_enabled_with_key(self, app_settings: SettingsFactory) -> None:
        client = MagicMock()
        with (
            patch("bargain.app.get_anthropic_client", return_value=client),
            patch("bargain.app.ReasoningBackend") as backend_cls,
        ):
            services = initialize_services(app_settings(anthropic_api_key="sk-test"))
        try:
            backend_cls.assert_called_once_with(
                client, model="claude-haiku-4-5", max_tokens=800
            )
        finally:
            close_services(services)

    def test_no_reasoning_backend_without_key(self, app_settings: SettingsFactory) -> None:
        with patch("bargain.app.ReasoningBackend") as backend_cls:
            services = initialize_services(app_settings())
        try:
            backend_cls.assert_not_called()
        finally:
            close_services(services)

    def test_settings_policy_reaches_engine(self, app_settings: SettingsFactory) -> None:
        services = initialize_services(
            app_settings(negotiation_rate_limit=3, discount_token_length=16)
        )
        try:
            summary = services["engine"].start("PHONE-X1", "u1", Decimal("80000"))
            assert summary.rate_limit_remaining == 2
            assert summary.discount_token is not None
            assert len(summary.discount_token) == 16
        finally:
            close_services(services)


class TestCreateApp:
    """Tests for the FastAPI application factory."""

    def test_returns_fastapi_app(self, services: dict[str, Any]) -> None:
        app = create_app(services)
        assert isinstance(app, FastAPI)
        assert app.state.services is services

    def test_routes_registered(self, services: dict[str, Any]) -> None:
        paths = {getattr(route, "path", None) for route in create_app(services).routes}
        for path in (
            "/api/negotiation/start",
            "/api/negotiation/continue",
            "/api/negotiation/redeem",
            "/api/negotiation/session/{session_id}",
            "/api/negotiation/rules",
            "/health",
            "/ready",
            "/metrics",
        ):
            assert path in paths

    def test_lifespan_closes_database(self, app_settings: SettingsFactory) -> None:
        services = initialize_services(app_settings())
        with TestClient(create_app(services)) as client:
            assert client.get("/ready").status_code == 200

        with pytest.raises(sqlite3.ProgrammingError):
            services["db_conn"].execute("SELECT 1")


class TestExpirySweep:
    """Tests for the background expiry task."""

    def test_returns_immediately_without_engine(self) -> None:
        asyncio.run(expire_sessions_periodically({}))

    def test_sweep_failure_is_logged_not_raised(self) -> None:
        engine = MagicMock()
        engine.expire_stale_sessions.side_effect = RuntimeError("database locked")

        async def run() -> None:
            with (
                patch("bargain.app.EXPIRY_SWEEP_SECONDS", 0),
                pytest.raises(TimeoutError),
            ):
                await asyncio.wait_for(
                    expire_sessions_periodically({"engine": engine}), timeout=0.2
                )

        asyncio.run(run())
        assert engine.expire_stale_sessions.call_count >= 2
