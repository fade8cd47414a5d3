"""Tests for the /health and /ready probes."""

from __future__ import annotations

import sqlite3
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from bargain.catalog.config_store import ConfigCatalog
from bargain.catalog.models import CatalogConfig
from bargain.domain.models import NegotiationRule
from bargain.health import register_health_routes
from bargain.state.schema import init_session_table
from bargain.state.store import SessionStore


def _client(services: dict[str, Any]) -> TestClient:
    app = FastAPI()
    app.state.services = services
    register_health_routes(app)
    return TestClient(app)


@pytest.fixture
def store() -> SessionStore:
    conn = sqlite3.connect(":memory:", check_same_thread=False)
    init_session_table(conn)
    return SessionStore(conn)


@pytest.fixture
def loaded_catalog(phone_rule: NegotiationRule) -> ConfigCatalog:
    return ConfigCatalog(CatalogConfig(rules=[phone_rule]))


class TestHealth:
    """GET /health."""

    def test_always_healthy(self) -> None:
        response = _client({}).get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}


class TestReady:
    """GET /ready."""

    def test_ready_when_everything_answers(
        self, store: SessionStore, loaded_catalog: ConfigCatalog
    ) -> None:
        client = _client(
            {"session_store": store, "engine": object(), "config_catalog": loaded_catalog}
        )

        response = client.get("/ready")

        assert response.status_code == 200
        assert response.json() == {
            "status": "ready",
            "checks": {"database": "ok", "engine": "ok", "catalog": "ok"},
        }

    def test_empty_catalog_is_not_ready(self, store: SessionStore) -> None:
        client = _client(
            {
                "session_store": store,
                "engine": object(),
                "config_catalog": ConfigCatalog(CatalogConfig()),
            }
        )

        response = client.get("/ready")

        assert response.status_code == 503
        assert response.json()["checks"]["catalog"] == "empty"

    def test_missing_services_fail(self) -> None:
        response = _client({}).get("/ready")

        assert response.status_code == 503
        assert response.json() == {
            "status": "not_ready",
            "checks": {"database": "fail", "engine": "fail", "catalog": "fail"},
        }

    def test_closed_database_fails_ping(
        self, store: SessionStore, loaded_catalog: ConfigCatalog
    ) -> None:
        store._conn.close()
        client = _client(
            {"session_store": store, "engine": object(), "config_catalog": loaded_catalog}
        )

        response = client.get("/ready")

        assert response.status_code == 503
        assert response.json()["checks"]["database"] == "fail"
