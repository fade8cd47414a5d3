"""Serialization helpers for sessions and timestamps.

Pydantic renders ``Decimal`` values as JSON strings, so no precision is lost
on the way through ``session_json``.  Index columns hold UTC timestamps in a
fixed-width ISO format so they compare correctly as text.
"""

from __future__ import annotations

from datetime import UTC, datetime

from bargain.domain.models import NegotiationSession

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def format_timestamp(value: datetime) -> str:
    """Render an aware datetime as a sortable UTC string."""
    return value.astimezone(UTC).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(value: str) -> datetime:
    """Inverse of :func:`format_timestamp`."""
    return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=UTC)


def serialize_session(session: NegotiationSession) -> str:
    """JSON-encode a session; ``version`` lives in its own column."""
    return session.model_dump_json(exclude={"version"})


def deserialize_session(json_str: str, version: int) -> NegotiationSession:
    """Rebuild a session from ``session_json`` and its row version."""
    session = NegotiationSession.model_validate_json(json_str)
    session.version = version
    return session
