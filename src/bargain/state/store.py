"""SQLite-backed negotiation session store.

Mirrors the audit store pattern: accepts a sqlite3.Connection, uses
parameterized queries exclusively, and commits synchronously after writes.
Updates are a compare-and-swap on the row ``version``; every
``sqlite3.Error`` surfaces as :class:`PersistenceFailure`.
"""

from __future__ import annotations

import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime

import structlog

from bargain.domain.errors import ConcurrentSessionUpdate, PersistenceFailure
from bargain.domain.models import NegotiationSession
from bargain.domain.types import SessionStatus
from bargain.state.serializers import deserialize_session, format_timestamp, serialize_session

logger = structlog.get_logger()


class SessionStore:
    """Persist and retrieve negotiation sessions.

    Also answers the activity lookups the fraud heuristics need.
    """

    def __init__(self, conn: sqlite3.Connection, lock: threading.Lock | None = None) -> None:
        """Initialize with an open database connection.

        Args:
            conn: An open sqlite3.Connection whose database already has the
                  ``negotiation_sessions`` table (see ``init_session_table``).
            lock: Optional lock shared with other users of *conn*.
        """
        self._conn = conn
        self._lock = lock or threading.Lock()

    @contextmanager
    def _guarded(self, operation: str) -> Iterator[sqlite3.Connection]:
        with self._lock:
            try:
                yield self._conn
            except sqlite3.Error as exc:
                logger.error("session_store_error", operation=operation, error=str(exc))
                raise PersistenceFailure(f"Session store {operation} failed: {exc}") from exc

    # ------------------------------------------------------------------
    # Write operations
    # ------------------------------------------------------------------

    def create(self, session: NegotiationSession) -> None:
        """Insert a new session at version 1."""
        now = format_timestamp(datetime.now(tz=UTC))
        with self._guarded("create") as conn:
            conn.execute(
                """
                INSERT INTO negotiation_sessions (
                    session_id, sku, user_id, user_segment, ip_address, status,
                    discount_token, created_at, expires_at, updated_at, version,
                    session_json
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 1, ?)
                """,
                (
                    session.session_id,
                    session.sku,
                    session.user_id,
                    session.user_segment.value,
                    session.ip_address,
                    session.status.value,
                    session.discount_token,
                    format_timestamp(session.created_at),
                    format_timestamp(session.expires_at),
                    now,
                    serialize_session(session),
                ),
            )
            conn.commit()
        session.version = 1

    def save(self, session: NegotiationSession) -> None:
        """Write *session* back if nobody else saved it since it was loaded.

        On success ``session.version`` is advanced to the stored version.

        Raises:
            ConcurrentSessionUpdate: If the stored version moved on.
            PersistenceFailure: On any database error.
        """
        now = format_timestamp(datetime.now(tz=UTC))
        with self._guarded("save") as conn:
            cursor = conn.execute(
                """
                UPDATE negotiation_sessions
                SET status = ?, discount_token = ?, updated_at = ?,
                    version = version + 1, session_json = ?
                WHERE session_id = ? AND version = ?
                """,
                (
                    session.status.value,
                    session.discount_token,
                    now,
                    serialize_session(session),
                    session.session_id,
                    session.version,
                ),
            )
            conn.commit()
            updated = cursor.rowcount
        if updated != 1:
            logger.warning(
                "session_version_conflict",
                session_id=session.session_id,
                expected_version=session.version,
            )
            raise ConcurrentSessionUpdate(session.session_id, session.version)
        session.version += 1

    # ------------------------------------------------------------------
    # Read operations
    # ------------------------------------------------------------------

    def _load_one(self, column: str, value: str) -> NegotiationSession | None:
        with self._guarded("load") as conn:
            row = conn.execute(
                f"SELECT session_json, version FROM negotiation_sessions WHERE {column} = ?",
                (value,),
            ).fetchone()
        if row is None:
            return None
        return deserialize_session(row[0], row[1])

    def load(self, session_id: str) -> NegotiationSession | None:
        return self._load_one("session_id", session_id)

    def load_by_token(self, token: str) -> NegotiationSession | None:
        return self._load_one("discount_token", token)

    def count_sessions_for_user_since(self, user_id: str, since: datetime) -> int:
        with self._guarded("count_user") as conn:
            row = conn.execute(
                "SELECT COUNT(*) FROM negotiation_sessions WHERE user_id = ? AND created_at >= ?",
                (user_id, format_timestamp(since)),
            ).fetchone()
        return int(row[0])

    def count_distinct_other_users_for_ip_since(
        self, ip_address: str, user_id: str, since: datetime
    ) -> int:
        with self._guarded("count_ip") as conn:
            row = conn.execute(
                """
                SELECT COUNT(DISTINCT user_id) FROM negotiation_sessions
                WHERE ip_address = ? AND user_id != ? AND created_at >= ?
                """,
                (ip_address, user_id, format_timestamp(since)),
            ).fetchone()
        return int(row[0])

    def list_expired_active(self, now: datetime, limit: int = 500) -> list[NegotiationSession]:
        """Sessions still marked active whose deadline has passed."""
        with self._guarded("list_expired") as conn:
            rows = conn.execute(
                """
                SELECT session_json, version FROM negotiation_sessions
                WHERE status = ? AND expires_at < ?
                ORDER BY expires_at LIMIT ?
                """,
                (SessionStatus.ACTIVE.value, format_timestamp(now), limit),
            ).fetchall()
        return [deserialize_session(r[0], r[1]) for r in rows]

    def list_created_between(self, start: datetime, end: datetime) -> list[NegotiationSession]:
        """Sessions created in ``[start, end)``, oldest first."""
        with self._guarded("list_created") as conn:
            rows = conn.execute(
                """
                SELECT session_json, version FROM negotiation_sessions
                WHERE created_at >= ? AND created_at < ?
                ORDER BY created_at
                """,
                (format_timestamp(start), format_timestamp(end)),
            ).fetchall()
        return [deserialize_session(r[0], r[1]) for r in rows]

    def ping(self) -> None:
        """Run ``SELECT 1``; raises ``PersistenceFailure`` if the database is unusable."""
        with self._guarded("ping") as conn:
            conn.execute("SELECT 1")
