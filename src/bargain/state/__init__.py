"""Negotiation session persistence package.

Provides SQLite-backed storage for sessions, serialization helpers, and
daily analytics over stored sessions.
"""

from bargain.state.analytics import DailySkuAggregate, aggregate_daily
from bargain.state.schema import init_session_table, open_database
from bargain.state.serializers import (
    deserialize_session,
    format_timestamp,
    parse_timestamp,
    serialize_session,
)
from bargain.state.store import SessionStore

__all__ = [
    "DailySkuAggregate",
    "SessionStore",
    "aggregate_daily",
    "deserialize_session",
    "format_timestamp",
    "init_session_table",
    "open_database",
    "parse_timestamp",
    "serialize_session",
]
