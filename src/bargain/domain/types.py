"""Domain enumerations for the price negotiation engine."""

from enum import StrEnum


class UserSegment(StrEnum):
    """Buyer classification that decides the allowed discount ceiling."""

    NEW = "new"
    RETURNING = "returning"
    VIP = "vip"


class SessionStatus(StrEnum):
    """Lifecycle states of a negotiation session."""

    ACTIVE = "active"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"


class DecisionStatus(StrEnum):
    """Outcome of one negotiation round as decided by a decision provider."""

    COUNTER = "counter"
    ACCEPT = "accept"
    REJECT = "reject"
    FINAL = "final"


class PerkType(StrEnum):
    """Non-price concessions that can accompany an offer."""

    FREE_SHIPPING = "freeShipping"
    FREE_GIFT = "freeGift"
    EXTENDED_WARRANTY = "extendedWarranty"
    BUNDLE = "bundle"


class FraudSeverity(StrEnum):
    """Severity of a fraud heuristic flag.  HIGH blocks session creation."""

    MEDIUM = "medium"
    HIGH = "high"


class Language(StrEnum):
    """Languages the storefront negotiates in."""

    EN = "en"
    RW = "rw"
