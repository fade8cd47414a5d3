"""Audit trail models for tracking every negotiation event."""

from enum import StrEnum

from pydantic import BaseModel


class EventType(StrEnum):
    """Types of events tracked in the audit trail."""

    SESSION_STARTED = "session_started"
    OFFER_PROCESSED = "offer_processed"
    STATE_TRANSITION = "state_transition"
    AGREEMENT = "agreement"
    REJECTION = "rejection"
    REDEMPTION = "redemption"
    GUARD_REJECTION = "guard_rejection"
    DECISION_FALLBACK = "decision_fallback"


class AuditEntry(BaseModel):
    """A single audit trail entry.

    All fields except event_type are optional to accommodate different
    event types (a guard refusal at ``start`` has no session yet).
    """

    event_type: EventType
    session_id: str | None = None
    sku: str | None = None
    user_id: str | None = None
    round_number: int | None = None
    offer_price: str | None = None
    counter_price: str | None = None
    session_status: str | None = None
    decision_status: str | None = None
    metadata: dict[str, str] | None = None
