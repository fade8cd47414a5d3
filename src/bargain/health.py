"""Liveness and readiness probes.

- ``GET /health``: 200 whenever the process answers.
- ``GET /ready``: 200 only when the session database answers, the engine
  is wired and the catalog has at least one negotiation rule loaded.
  Otherwise 503 with the failing checks.
"""

from __future__ import annotations

import asyncio
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


async def _database_check(services: dict[str, Any]) -> str:
    session_store = services.get("session_store")
    if session_store is None:
        return "fail"
    try:
        await asyncio.to_thread(session_store.ping)
    except Exception:
        return "fail"
    return "ok"


def _catalog_check(services: dict[str, Any]) -> str:
    config_catalog = services.get("config_catalog")
    if config_catalog is None:
        return "fail"
    return "ok" if config_catalog.list_rules() else "empty"


def register_health_routes(app: FastAPI) -> None:
    """Mount ``/health`` and ``/ready`` on *app*."""

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "healthy"}

    @app.get("/ready")
    async def ready(request: Request) -> JSONResponse:
        services: dict[str, Any] = request.app.state.services
        checks = {
            "database": await _database_check(services),
            "engine": "ok" if services.get("engine") is not None else "fail",
            "catalog": _catalog_check(services),
        }
        all_ok = all(v == "ok" for v in checks.values())
        return JSONResponse(
            content={"status": "ready" if all_ok else "not_ready", "checks": checks},
            status_code=200 if all_ok else 503,
        )
