"""Domain types, models, and errors for the negotiation engine."""

from bargain.domain.errors import (
    AlreadyRedeemed,
    ConcurrentSessionUpdate,
    DecisionBackendFailure,
    DuplicateOffer,
    FeatureDisabled,
    FraudBlocked,
    InsufficientStock,
    InvalidOffer,
    InvalidToken,
    InvalidTransitionError,
    NegotiationError,
    PersistenceFailure,
    ProductUnavailable,
    RateLimitExceeded,
    SessionExpired,
    SessionNotFound,
    TokenExpired,
)
from bargain.domain.models import (
    Decision,
    DecisionOutcome,
    NegotiationRule,
    NegotiationSession,
    OfferMetadata,
    Perk,
    RedemptionSummary,
    Round,
    SessionSummary,
)
from bargain.domain.types import (
    DecisionStatus,
    FraudSeverity,
    Language,
    PerkType,
    SessionStatus,
    UserSegment,
)

__all__ = [
    "AlreadyRedeemed",
    "ConcurrentSessionUpdate",
    "Decision",
    "DecisionBackendFailure",
    "DecisionOutcome",
    "DecisionStatus",
    "DuplicateOffer",
    "FeatureDisabled",
    "FraudBlocked",
    "FraudSeverity",
    "InsufficientStock",
    "InvalidOffer",
    "InvalidToken",
    "InvalidTransitionError",
    "Language",
    "NegotiationError",
    "NegotiationRule",
    "NegotiationSession",
    "OfferMetadata",
    "PersistenceFailure",
    "Perk",
    "PerkType",
    "ProductUnavailable",
    "RateLimitExceeded",
    "RedemptionSummary",
    "Round",
    "SessionExpired",
    "SessionNotFound",
    "SessionStatus",
    "SessionSummary",
    "TokenExpired",
    "UserSegment",
]
