"""Domain-specific exception classes for the negotiation engine.

Every error a caller can see derives from :class:`NegotiationError` and
carries a stable ``code`` plus a ``retryable`` hint.  The HTTP layer maps
these onto status codes; nothing in the engine depends on HTTP.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from bargain.domain.types import SessionStatus

if TYPE_CHECKING:
    from bargain.domain.models import FraudFlag


class NegotiationError(Exception):
    """Base class for all domain errors in the negotiation engine."""

    code: str = "negotiation_error"
    retryable: bool = False


class InvalidOffer(NegotiationError):
    """Raised when an offer price or quantity is not a positive number."""

    code = "invalid_offer"


class RateLimitExceeded(NegotiationError):
    """Raised when a user exhausted their negotiation attempts for the window.

    Attributes:
        reset_at: When the current window closes and attempts are restored.
    """

    code = "rate_limit_exceeded"
    retryable = True

    def __init__(self, reset_at: datetime) -> None:
        self.reset_at = reset_at
        super().__init__(f"Rate limit exceeded. Try again after {reset_at.isoformat()}")


class FeatureDisabled(NegotiationError):
    """Raised when negotiation is switched off for this user, product, or segment."""

    code = "feature_disabled"

    def __init__(self, sku: str) -> None:
        self.sku = sku
        super().__init__(f"Negotiation is not available for product {sku}")


class FraudBlocked(NegotiationError):
    """Raised when a high-severity fraud flag refuses session creation.

    Attributes:
        flags: All flags raised for the attempt, high and medium alike.
    """

    code = "fraud_blocked"

    def __init__(self, flags: list[FraudFlag]) -> None:
        self.flags = flags
        super().__init__("Negotiation blocked due to suspicious activity")


class InsufficientStock(NegotiationError):
    """Raised when the requested quantity exceeds available stock."""

    code = "insufficient_stock"

    def __init__(self, sku: str, requested: int, available: int) -> None:
        self.sku = sku
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for {sku}: requested {requested}, available {available}"
        )


class ProductUnavailable(NegotiationError):
    """Raised when a product cannot (or can no longer) be negotiated."""

    code = "product_unavailable"

    def __init__(self, sku: str) -> None:
        self.sku = sku
        super().__init__(f"Product {sku} is not available for negotiation")


class SessionNotFound(NegotiationError):
    """Raised when no session exists for the given identifier."""

    code = "session_not_found"

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__("Negotiation session not found")


class SessionExpired(NegotiationError):
    """Raised when a session can no longer accept offers.

    Attributes:
        reason: ``"expired"`` (deadline passed), ``"closed"`` (terminal
            status), or ``"round_limit"`` (all rounds used).
    """

    code = "session_expired"

    def __init__(self, session_id: str, reason: str) -> None:
        self.session_id = session_id
        self.reason = reason
        super().__init__(f"Negotiation has ended or expired ({reason})")


class DuplicateOffer(NegotiationError):
    """Raised when the same offer value is submitted twice in one session."""

    code = "duplicate_offer"

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__("Duplicate offer detected")


class InvalidToken(NegotiationError):
    """Raised when a discount token does not belong to any session."""

    code = "invalid_token"

    def __init__(self) -> None:
        super().__init__("Invalid discount token")


class AlreadyRedeemed(NegotiationError):
    """Raised when a discount token has already been applied."""

    code = "already_redeemed"

    def __init__(self) -> None:
        super().__init__("Discount already applied")


class TokenExpired(NegotiationError):
    """Raised when a discount token is presented after its session deadline."""

    code = "token_expired"

    def __init__(self) -> None:
        super().__init__("Discount has expired")


class DecisionBackendFailure(NegotiationError):
    """Raised by a decision provider that could not produce a usable decision.

    Internal only: the engine always absorbs it by falling back to the
    deterministic negotiator.
    """

    code = "decision_backend_failure"


class PersistenceFailure(NegotiationError):
    """Raised when the session store could not commit or read a record."""

    code = "persistence_failure"
    retryable = True


class ConcurrentSessionUpdate(NegotiationError):
    """Raised when another writer saved the session first (version mismatch)."""

    code = "concurrent_session_update"
    retryable = True

    def __init__(self, session_id: str, expected_version: int | None = None) -> None:
        self.session_id = session_id
        self.expected_version = expected_version
        if expected_version is None:
            message = f"Session {session_id} is being updated by another request"
        else:
            message = (
                f"Session {session_id} was modified concurrently (expected version "
                f"{expected_version})"
            )
        super().__init__(message)


class InvalidTransitionError(NegotiationError):
    """Raised when an invalid state transition is attempted.

    Attributes:
        current_state: The state the machine was in when the transition was attempted.
        event: The event that was rejected.
    """

    code = "invalid_transition"

    def __init__(self, current_state: SessionStatus, event: str) -> None:
        self.current_state = current_state
        self.event = event
        super().__init__(f"Cannot apply event '{event}' in state '{current_state}'")
