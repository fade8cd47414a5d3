"""Application entry point for the negotiation HTTP service.

Configures:
- **structlog** with JSON rendering (production) or colored console (development)
- **Sentry** error reporting when a DSN is configured
- **SQLite** session store and audit trail on one connection
- **Decision provider** with the reasoning backend (if an Anthropic key is
  set) and the deterministic negotiator as fallback
- **FastAPI** routes, request-id middleware, Prometheus metrics and probes
- A background sweep marking stale sessions expired
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI

from bargain.api import register_error_handlers
from bargain.api import router as negotiation_router
from bargain.audit.logger import AuditLogger
from bargain.audit.store import init_audit_table
from bargain.catalog.config_store import ConfigCatalog
from bargain.catalog.http import HttpCatalog
from bargain.catalog.interfaces import Catalog
from bargain.config import Settings, get_settings, validate_settings
from bargain.decision.client import get_anthropic_client
from bargain.decision.provider import DecisionProvider
from bargain.decision.reasoning import ReasoningBackend
from bargain.domain.models import DecisionContext
from bargain.domain.types import UserSegment
from bargain.engine import NegotiationEngine
from bargain.guards.fraud import FraudHeuristics
from bargain.guards.locks import SessionLocks
from bargain.guards.rate_limit import InMemoryRateLimitStore, RateLimiter
from bargain.guards.replay import InMemoryReplayStore, ReplayGuard
from bargain.health import register_health_routes
from bargain.observability.metrics import setup_metrics
from bargain.observability.middleware import RequestIdMiddleware
from bargain.observability.sentry import get_sentry_processor, init_sentry
from bargain.state.schema import init_session_table, open_database
from bargain.state.store import SessionStore

logger = structlog.get_logger()

EXPIRY_SWEEP_SECONDS = 300


def configure_logging(production: bool = False, sentry_enabled: bool = False) -> None:
    """Configure structlog for production (JSON) or development (console).

    Production mode (*production=True*): JSON rendering at INFO level.
    Development mode: colored console rendering at DEBUG level.

    Args:
        production: Enable production mode if ``True``.
        sentry_enabled: Forward ERROR events to Sentry if ``True``.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if sentry_enabled:
        shared_processors.append(get_sentry_processor())

    if production:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
        log_level = logging.INFO
    else:
        renderer = structlog.dev.ConsoleRenderer()
        log_level = logging.DEBUG

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(service="bargain")


def initialize_services(settings: Settings | None = None) -> dict[str, Any]:
    """Set up all shared services for the application.

    Opens the database, creates the session store and audit logger on one
    connection, loads the catalog configuration, builds the decision
    provider and the guards, and wires them into a ``NegotiationEngine``.

    Args:
        settings: Application settings.  If ``None``, ``get_settings()`` is used.

    Returns:
        A dict of initialized service instances keyed by name.
    """
    if settings is None:
        settings = get_settings()

    services: dict[str, Any] = {"_settings": settings}

    # a. Database: sessions and audit trail share one connection and lock
    db_conn = open_database(settings.database_path)
    init_session_table(db_conn)
    init_audit_table(db_conn)
    db_lock = threading.Lock()
    services["db_conn"] = db_conn

    session_store = SessionStore(db_conn, lock=db_lock)
    services["session_store"] = session_store
    audit_logger = AuditLogger(db_conn, lock=db_lock)
    services["audit_logger"] = audit_logger

    # b. Catalog collaborators
    config_catalog = ConfigCatalog.from_yaml(settings.catalog_config_path)
    services["config_catalog"] = config_catalog
    catalog: Catalog = config_catalog
    if settings.catalog_url:
        http_catalog = HttpCatalog(settings.catalog_url)
        services["http_catalog"] = http_catalog
        catalog = http_catalog
        logger.info("http_catalog_enabled", url=settings.catalog_url)

    # c. Decision provider
    def on_fallback(context: DecisionContext, exc: Exception) -> None:
        audit_logger.log_decision_fallback(context.sku, context.current_round, str(exc))

    primary = None
    anthropic_client = get_anthropic_client(settings)
    if anthropic_client is not None:
        primary = ReasoningBackend(
            anthropic_client,
            model=settings.reasoning_model,
            max_tokens=settings.reasoning_max_tokens,
        )
        logger.info("reasoning_backend_enabled", model=settings.reasoning_model)
    else:
        logger.info("reasoning_backend_disabled")
    decisions = DecisionProvider(primary=primary, on_fallback=on_fallback)

    # d. Engine
    services["engine"] = NegotiationEngine(
        store=session_store,
        rules=config_catalog,
        decisions=decisions,
        rate_limiter=RateLimiter(
            InMemoryRateLimitStore(),
            limit=settings.negotiation_rate_limit,
            window=timedelta(seconds=settings.negotiation_rate_window_seconds),
        ),
        replay_guard=ReplayGuard(InMemoryReplayStore()),
        fraud=FraudHeuristics(session_store),
        catalog=catalog,
        flags=config_catalog,
        history=config_catalog,
        audit=audit_logger,
        locks=SessionLocks(),
        session_ttl=timedelta(minutes=settings.session_ttl_minutes),
        default_segment=UserSegment(settings.default_segment),
        fallback_base_price=settings.fallback_base_price,
        token_length=settings.discount_token_length,
    )

    logger.info("services_initialized", database=str(settings.database_path))
    return services


def close_services(services: dict[str, Any]) -> None:
    """Release the HTTP catalog client and the database connection."""
    http_catalog = services.get("http_catalog")
    if http_catalog is not None:
        http_catalog.close()
    db_conn = services.get("db_conn")
    if db_conn is not None:
        db_conn.close()
        logger.info("database_connection_closed")


async def expire_sessions_periodically(services: dict[str, Any]) -> None:
    """Mark stale sessions expired every few minutes.

    Expiry is also applied lazily on read, so a missed sweep only delays
    the stored status.

    Args:
        services: The initialized services dict.
    """
    engine: NegotiationEngine | None = services.get("engine")
    if engine is None:
        return

    while True:
        await asyncio.sleep(EXPIRY_SWEEP_SECONDS)
        try:
            await asyncio.to_thread(engine.expire_stale_sessions)
        except Exception:
            logger.exception("expiry_sweep_failed")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Lifespan context manager for FastAPI startup and shutdown.

    On startup: starts the expiry sweep.
    On shutdown: stops the sweep and closes the database connection.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control to the application.
    """
    services = app.state.services
    sweep = asyncio.create_task(expire_sessions_periodically(services))
    logger.info("lifespan_started")
    yield
    sweep.cancel()
    close_services(services)


def create_app(services: dict[str, Any]) -> FastAPI:
    """Create the FastAPI app with lifespan, negotiation routes and probes.

    Args:
        services: The initialized services dict from ``initialize_services``.

    Returns:
        The configured FastAPI application.
    """
    fastapi_app = FastAPI(title="Bargain Negotiation Engine", lifespan=lifespan)
    fastapi_app.state.services = services
    fastapi_app.state.settings = services.get("_settings", get_settings())
    fastapi_app.add_middleware(RequestIdMiddleware)
    fastapi_app.include_router(negotiation_router)
    register_error_handlers(fastapi_app)
    register_health_routes(fastapi_app)
    setup_metrics(fastapi_app)
    return fastapi_app


async def main() -> None:
    """Main entry point.

    1. Initialize Sentry and configure logging
    2. Validate settings and initialize services
    3. Create the FastAPI app and serve it with uvicorn
    """
    settings = get_settings()
    sentry_enabled = init_sentry(
        settings.sentry_dsn, "production" if settings.production else "development"
    )
    configure_logging(production=settings.production, sentry_enabled=sentry_enabled)
    logger.info("application_starting", sentry=sentry_enabled)

    validate_settings(settings)

    services = initialize_services(settings)
    fastapi_app = create_app(services)

    config = uvicorn.Config(
        fastapi_app,
        host="0.0.0.0",
        port=settings.api_port,
        log_level="info",
    )
    server = uvicorn.Server(config)
    await server.serve()


def run() -> None:
    """Console script entry point (``bargain-api``)."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
