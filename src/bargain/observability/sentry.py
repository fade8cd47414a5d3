"""Error reporting to Sentry.

Errors reach Sentry through structlog: ``SentryProcessor`` turns ERROR log
events into Sentry events, so the SDK's own logging capture is switched off.
Buyer IP addresses never leave the process; ``scrub_event`` drops them from
request data before an event is sent.
"""

from __future__ import annotations

import logging
from typing import Any

import sentry_sdk
import structlog
from sentry_sdk.integrations.logging import LoggingIntegration
from structlog_sentry import SentryProcessor

SCRUBBED_HEADERS = frozenset({"x-forwarded-for", "x-real-ip", "cookie", "authorization"})


def scrub_event(event: dict[str, Any], hint: dict[str, Any]) -> dict[str, Any]:
    """Strip client addresses and credentials from an outgoing Sentry event."""
    request = event.get("request")
    if isinstance(request, dict):
        headers = request.get("headers")
        if isinstance(headers, dict):
            request["headers"] = {
                k: v for k, v in headers.items() if k.lower() not in SCRUBBED_HEADERS
            }
        request.pop("env", None)
    user = event.get("user")
    if isinstance(user, dict):
        user.pop("ip_address", None)
    return event


def init_sentry(dsn: str, environment: str = "development") -> bool:
    """Initialize the Sentry SDK when a DSN is configured.

    Args:
        dsn: Sentry DSN.  Empty disables reporting.
        environment: Environment tag attached to every event.

    Returns:
        True if the SDK was initialized.
    """
    if not dsn:
        return False

    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        traces_sample_rate=0.1,
        send_default_pii=False,
        before_send=scrub_event,
        integrations=[LoggingIntegration(event_level=None, level=None)],
    )
    sentry_sdk.set_tag("service", "bargain")
    return True


def get_sentry_processor() -> structlog.types.Processor:
    """Structlog processor forwarding ERROR events to Sentry (goes before the renderer)."""
    return SentryProcessor(event_level=logging.ERROR)
