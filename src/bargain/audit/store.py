"""SQLite-backed audit trail store with indexed queries.

Provides functions to create the audit table, insert audit entries, and
query the audit trail with flexible filtering. Uses parameterized queries
exclusively (never string concatenation) to prevent SQL injection.
"""

from __future__ import annotations

import json
import sqlite3
from datetime import UTC, datetime
from typing import Any

from bargain.audit.models import AuditEntry


def init_audit_table(conn: sqlite3.Connection) -> None:
    """Create the audit_log table and its indexes if they do not exist.

    Args:
        conn: An open sqlite3.Connection (see ``bargain.state.open_database``).
    """
    conn.execute("""
        CREATE TABLE IF NOT EXISTS audit_log (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            timestamp TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now')),
            event_type TEXT NOT NULL,
            session_id TEXT,
            sku TEXT,
            user_id TEXT,
            round_number INTEGER,
            offer_price TEXT,
            counter_price TEXT,
            session_status TEXT,
            decision_status TEXT,
            metadata TEXT
        )
    """)

    conn.execute("CREATE INDEX IF NOT EXISTS idx_audit_session ON audit_log (session_id)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_audit_sku ON audit_log (sku)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_audit_timestamp ON audit_log (timestamp)")

    conn.commit()


def insert_audit_entry(conn: sqlite3.Connection, entry: AuditEntry) -> int:
    """Insert an audit entry into the database.

    Args:
        conn: An open database connection.
        entry: The audit entry to insert.

    Returns:
        The row ID of the inserted entry.
    """
    metadata_json: str | None = None
    if entry.metadata is not None:
        metadata_json = json.dumps(entry.metadata)

    timestamp = datetime.now(tz=UTC).strftime("%Y-%m-%dT%H:%M:%SZ")

    cursor = conn.execute(
        """
        INSERT INTO audit_log (
            timestamp, event_type, session_id, sku, user_id, round_number,
            offer_price, counter_price, session_status, decision_status, metadata
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            timestamp,
            entry.event_type.value,
            entry.session_id,
            entry.sku,
            entry.user_id,
            entry.round_number,
            entry.offer_price,
            entry.counter_price,
            entry.session_status,
            entry.decision_status,
            metadata_json,
        ),
    )
    conn.commit()
    return cursor.lastrowid or 0


def query_audit_trail(
    conn: sqlite3.Connection,
    *,
    session_id: str | None = None,
    sku: str | None = None,
    user_id: str | None = None,
    from_date: str | None = None,
    to_date: str | None = None,
    event_type: str | None = None,
    limit: int = 50,
) -> list[dict[str, Any]]:
    """Query the audit trail with flexible filtering.

    All filters are optional. Results are ordered newest first.

    Args:
        conn: An open database connection.
        session_id: Filter by session (exact match).
        sku: Filter by SKU (exact match).
        user_id: Filter by buyer (exact match).
        from_date: Filter entries on or after this ISO 8601 date.
        to_date: Filter entries on or before this ISO 8601 date. A bare
            ``YYYY-MM-DD`` includes the whole day.
        event_type: Filter by event type (exact match).
        limit: Maximum number of results to return (default 50).

    Returns:
        A list of dicts, one per matching audit entry, newest first.
    """
    if to_date is not None and len(to_date) == len("YYYY-MM-DD"):
        to_date = f"{to_date}T23:59:59Z"

    conditions: list[str] = []
    params: list[str | int] = []

    filters = {
        "session_id = ?": session_id,
        "sku = ?": sku,
        "user_id = ?": user_id,
        "timestamp >= ?": from_date,
        "timestamp <= ?": to_date,
        "event_type = ?": event_type,
    }
    for condition, value in filters.items():
        if value is not None:
            conditions.append(condition)
            params.append(value)

    where_clause = ""
    if conditions:
        where_clause = "WHERE " + " AND ".join(conditions)

    query = f"SELECT * FROM audit_log {where_clause} ORDER BY timestamp DESC, id DESC LIMIT ?"
    params.append(limit)

    cursor = conn.execute(query, params)
    columns = [c[0] for c in cursor.description]
    results: list[dict[str, Any]] = []
    for row in cursor.fetchall():
        row_dict = dict(zip(columns, row, strict=True))
        if row_dict.get("metadata") is not None:
            row_dict["metadata"] = json.loads(row_dict["metadata"])
        results.append(row_dict)

    return results
