"""Convenience class for inserting audit trail entries.

Each method creates a properly structured :class:`AuditEntry` and inserts
it via :func:`insert_audit_entry`.  Writes share the session store's lock
when one is passed in, so both can use a single connection from worker
threads.
"""

from __future__ import annotations

import sqlite3
import threading
from decimal import Decimal

from bargain.audit.models import AuditEntry, EventType
from bargain.audit.store import insert_audit_entry
from bargain.domain.models import NegotiationSession, Round


def _money(value: Decimal | None) -> str | None:
    return None if value is None else str(value)


class AuditLogger:
    """Typed convenience API for inserting audit entries.

    Args:
        conn: An open SQLite connection to the negotiation database.
        lock: Optional lock shared with other users of *conn*.
    """

    def __init__(self, conn: sqlite3.Connection, lock: threading.Lock | None = None) -> None:
        self._conn = conn
        self._lock = lock or threading.Lock()

    def _insert(self, entry: AuditEntry) -> int:
        with self._lock:
            return insert_audit_entry(self._conn, entry)

    def log_session_started(self, session: NegotiationSession) -> int:
        """Log a newly created session with its bounds and fraud flags.

        Args:
            session: The session just created.

        Returns:
            The row ID of the inserted audit entry.
        """
        metadata = {
            "segment": session.user_segment.value,
            "quantity": str(session.quantity),
            "base_price": str(session.base_price),
            "floor_price": str(session.floor_price),
            "max_rounds": str(session.max_rounds),
        }
        if session.fraud_flags:
            metadata["fraud_flags"] = ",".join(f.flag for f in session.fraud_flags)
        return self._insert(
            AuditEntry(
                event_type=EventType.SESSION_STARTED,
                session_id=session.session_id,
                sku=session.sku,
                user_id=session.user_id,
                session_status=session.status.value,
                metadata=metadata,
            )
        )

    def log_offer_processed(self, session: NegotiationSession, entry: Round) -> int:
        """Log one decided round, including which backend decided it."""
        return self._insert(
            AuditEntry(
                event_type=EventType.OFFER_PROCESSED,
                session_id=session.session_id,
                sku=session.sku,
                user_id=session.user_id,
                round_number=entry.round_number,
                offer_price=_money(entry.user_offer),
                counter_price=_money(entry.decision.counter_price),
                session_status=session.status.value,
                decision_status=entry.decision.status.value,
                metadata={"backend": entry.backend},
            )
        )

    def log_state_transition(
        self,
        session: NegotiationSession,
        from_state: str,
        to_state: str,
        event: str,
    ) -> int:
        """Log a session status change.

        Stores from_state, to_state, and event in metadata.
        """
        return self._insert(
            AuditEntry(
                event_type=EventType.STATE_TRANSITION,
                session_id=session.session_id,
                sku=session.sku,
                user_id=session.user_id,
                session_status=to_state,
                metadata={"from_state": from_state, "to_state": to_state, "event": event},
            )
        )

    def log_agreement(self, session: NegotiationSession) -> int:
        """Log an accepted deal."""
        analytics = session.analytics
        return self._insert(
            AuditEntry(
                event_type=EventType.AGREEMENT,
                session_id=session.session_id,
                sku=session.sku,
                user_id=session.user_id,
                round_number=session.current_round,
                offer_price=_money(session.final_price),
                session_status=session.status.value,
                metadata={
                    "base_price": str(session.base_price),
                    "discount_given": str(analytics.discount_given),
                    "discount_pct": str(analytics.discount_pct),
                },
            )
        )

    def log_rejection(self, session: NegotiationSession) -> int:
        """Log a negotiation the engine turned down."""
        return self._insert(
            AuditEntry(
                event_type=EventType.REJECTION,
                session_id=session.session_id,
                sku=session.sku,
                user_id=session.user_id,
                round_number=session.current_round,
                offer_price=_money(session.analytics.final_offer),
                session_status=session.status.value,
            )
        )

    def log_redemption(self, session: NegotiationSession) -> int:
        """Log a discount token applied at checkout."""
        return self._insert(
            AuditEntry(
                event_type=EventType.REDEMPTION,
                session_id=session.session_id,
                sku=session.sku,
                user_id=session.user_id,
                offer_price=_money(session.final_price),
                session_status=session.status.value,
            )
        )

    def log_guard_rejection(
        self,
        reason: str,
        detail: str,
        *,
        user_id: str | None = None,
        sku: str | None = None,
        session_id: str | None = None,
    ) -> int:
        """Log a request refused by a guard or business check.

        Args:
            reason: The error code (e.g. ``"rate_limit_exceeded"``).
            detail: Human-readable message.
            user_id: The buyer, when known.
            sku: The product, when known.
            session_id: The session, for ``continue``/``redeem`` refusals.

        Returns:
            The row ID of the inserted audit entry.
        """
        return self._insert(
            AuditEntry(
                event_type=EventType.GUARD_REJECTION,
                session_id=session_id,
                sku=sku,
                user_id=user_id,
                metadata={"reason": reason, "detail": detail},
            )
        )

    def log_decision_fallback(self, sku: str, round_number: int, error: str) -> int:
        """Log a reasoning backend failure absorbed by the deterministic negotiator."""
        return self._insert(
            AuditEntry(
                event_type=EventType.DECISION_FALLBACK,
                sku=sku,
                round_number=round_number,
                metadata={"error": error},
            )
        )
