"""SQLite connection setup and DDL for negotiation session persistence.

Sessions and the audit trail share one database file.  The connection is
opened with ``check_same_thread=False`` because request handlers run the
synchronous engine in worker threads; the stores serialise access to it.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path


def open_database(db_path: Path | str) -> sqlite3.Connection:
    """Open the negotiation database with WAL mode enabled.

    Args:
        db_path: Path to the SQLite database file, or ``":memory:"``.

    Returns:
        An open sqlite3.Connection usable from any thread.
    """
    if str(db_path) != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    return conn


def init_session_table(conn: sqlite3.Connection) -> None:
    """Create the negotiation_sessions table if it does not already exist.

    The full session lives in ``session_json``; the other columns are
    copies of the fields the engine filters on.  ``version`` is bumped on
    every save and compared on the next one.

    Args:
        conn: An open sqlite3.Connection.
    """
    conn.execute("""
        CREATE TABLE IF NOT EXISTS negotiation_sessions (
            session_id TEXT PRIMARY KEY,
            sku TEXT NOT NULL,
            user_id TEXT NOT NULL,
            user_segment TEXT NOT NULL,
            ip_address TEXT,
            status TEXT NOT NULL,
            discount_token TEXT,
            created_at TEXT NOT NULL,
            expires_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            version INTEGER NOT NULL DEFAULT 1,
            session_json TEXT NOT NULL
        )
    """)

    conn.execute("CREATE INDEX IF NOT EXISTS idx_sessions_sku ON negotiation_sessions (sku)")
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_sessions_user ON negotiation_sessions (user_id, created_at)"
    )
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_sessions_ip "
        "ON negotiation_sessions (ip_address, created_at)"
    )
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_sessions_status "
        "ON negotiation_sessions (status, expires_at)"
    )
    conn.execute(
        "CREATE UNIQUE INDEX IF NOT EXISTS idx_sessions_token "
        "ON negotiation_sessions (discount_token) WHERE discount_token IS NOT NULL"
    )
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_sessions_created ON negotiation_sessions (created_at)"
    )

    conn.commit()
