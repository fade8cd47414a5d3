"""Prometheus metrics instrumentation for the negotiation engine.

Provides:
- ``setup_metrics(app)``: Attach prometheus-fastapi-instrumentator to a FastAPI app,
  exposing ``/metrics`` with HTTP request duration/count plus the business counters.
- ``SESSIONS_STARTED``: Sessions created.
- ``OFFERS_PROCESSED``: Rounds decided, labelled by decision status.
- ``DEALS_ACCEPTED``: Sessions reaching ACCEPTED.
- ``DISCOUNTS_REDEEMED``: Discount tokens redeemed.
- ``DECISION_FALLBACKS``: Rounds decided by the deterministic negotiator after a
  reasoning backend failure.
- ``GUARD_REJECTIONS``: Refused requests, labelled by error code.

Business metrics are updated where the event happens (not by polling the database).
"""

from __future__ import annotations

from fastapi import FastAPI
from prometheus_client import Counter
from prometheus_fastapi_instrumentator import Instrumentator

SESSIONS_STARTED: Counter = Counter(
    "bargain_sessions_started",
    "Total number of negotiation sessions created",
)

OFFERS_PROCESSED: Counter = Counter(
    "bargain_offers_processed",
    "Total number of offers decided, by decision status",
    ["status"],
)

DEALS_ACCEPTED: Counter = Counter(
    "bargain_deals_accepted",
    "Total number of sessions reaching ACCEPTED",
)

DISCOUNTS_REDEEMED: Counter = Counter(
    "bargain_discounts_redeemed",
    "Total number of discount tokens redeemed",
)

DECISION_FALLBACKS: Counter = Counter(
    "bargain_decision_fallbacks",
    "Total number of rounds that fell back to the deterministic negotiator",
)

GUARD_REJECTIONS: Counter = Counter(
    "bargain_guard_rejections",
    "Total number of requests refused by a guard or business check",
    ["reason"],
)


def setup_metrics(app: FastAPI) -> None:
    """Instrument *app* with Prometheus HTTP metrics and expose ``/metrics``.

    Excludes health/ready/metrics endpoints from instrumentation to avoid
    noise in dashboards.

    Args:
        app: The FastAPI application to instrument.
    """
    Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=True,
        excluded_handlers=["/health", "/ready", "/metrics"],
    ).instrument(app).expose(app, include_in_schema=False, should_gzip=True)
