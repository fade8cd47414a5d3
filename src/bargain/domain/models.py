"""Pydantic v2 models for domain data structures in the negotiation engine.

Monetary values are ``Decimal``.  Configuration models (rules, bundles,
segment ceilings) reject float inputs to prevent precision errors; models
that carry decisions accept whatever a decision provider produced and are
normalised by :mod:`bargain.decision.validation`.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from bargain.domain.types import (
    DecisionStatus,
    FraudSeverity,
    Language,
    PerkType,
    SessionStatus,
    UserSegment,
)

# Wire models use camelCase on the outside and snake_case in Python.
WIRE_CONFIG = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _reject_float(v: object) -> object:
    if isinstance(v, float):
        raise ValueError("Use Decimal, int or string, not float, for monetary values")
    return v


class LocalizedText(BaseModel):
    """Text with an English original and an optional Kinyarwanda translation."""

    model_config = ConfigDict(frozen=True)

    en: str
    rw: str | None = None

    def for_language(self, language: str) -> str:
        """Return the text in *language*, falling back to English."""
        if language == Language.RW and self.rw:
            return self.rw
        return self.en


# ---------------------------------------------------------------------------
# Negotiation rule (external configuration, read-only for the engine)
# ---------------------------------------------------------------------------


class SegmentRule(BaseModel):
    """Per-segment discount ceiling."""

    model_config = ConfigDict(frozen=True)

    segment: UserSegment
    max_discount_pct: Decimal = Field(ge=0, le=100)
    min_purchase_count: int = 0
    max_purchase_count: int | None = None

    _no_float = field_validator("max_discount_pct", mode="before")(_reject_float)


class BundlePair(BaseModel):
    """A product that can be offered together with the negotiated one."""

    model_config = ConfigDict(frozen=True)

    main_sku: str
    bundle_sku: str
    bundle_price: Decimal = Field(ge=0)
    bundle_description: LocalizedText | None = None

    _no_float = field_validator("bundle_price", mode="before")(_reject_float)


class FreeShippingPerk(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    threshold: Decimal | None = None


class FreeGiftPerk(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    gift_description: LocalizedText | None = None


class ExtendedWarrantyPerk(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    months: int = 12


class FallbackPerks(BaseModel):
    """Non-price concessions a rule allows the negotiator to hand out."""

    model_config = ConfigDict(frozen=True)

    free_shipping: FreeShippingPerk = Field(default_factory=FreeShippingPerk)
    free_gift: FreeGiftPerk = Field(default_factory=FreeGiftPerk)
    extended_warranty: ExtendedWarrantyPerk = Field(default_factory=ExtendedWarrantyPerk)


class NegotiationRule(BaseModel):
    """Per-SKU pricing and negotiation configuration.

    Prices are per unit; the engine multiplies by quantity when it opens a
    session.
    """

    model_config = ConfigDict(frozen=True)

    sku: str
    product_name: LocalizedText
    base_price: Decimal = Field(ge=0)
    min_price: Decimal = Field(ge=0)
    max_discount_pct: Decimal = Field(default=Decimal("15"), ge=0, le=100)
    max_rounds: int = Field(default=3, ge=1, le=5)
    clearance_flag: bool = False
    stock_level: int = Field(default=0, ge=0)
    bundle_pairs: list[BundlePair] = Field(default_factory=list)
    segment_rules: list[SegmentRule] = Field(default_factory=list)
    fallback_perks: FallbackPerks = Field(default_factory=FallbackPerks)
    enabled: bool = True
    priority: int = 0

    _no_float = field_validator("base_price", "min_price", "max_discount_pct", mode="before")(
        _reject_float
    )

    @model_validator(mode="after")
    def min_price_must_not_exceed_base_price(self) -> NegotiationRule:
        """Ensure min_price does not exceed base_price."""
        if self.min_price > self.base_price:
            raise ValueError(
                f"min_price ({self.min_price}) must not exceed base_price ({self.base_price})"
            )
        return self

    def segment_ceiling(self, segment: UserSegment) -> Decimal | None:
        """Return the segment's discount ceiling, or ``None`` if not configured."""
        for rule in self.segment_rules:
            if rule.segment == segment:
                return rule.max_discount_pct
        return None


# ---------------------------------------------------------------------------
# Decisions
# ---------------------------------------------------------------------------


class Perk(BaseModel):
    """A concrete perk offered alongside (or instead of) a price concession."""

    model_config = WIRE_CONFIG

    type: PerkType
    description: str = ""
    value: str | int | None = None


class BundleSuggestion(BaseModel):
    """A bundle the buyer could take instead of a deeper discount."""

    model_config = WIRE_CONFIG

    sku: str
    name: str | None = None
    price: Decimal | None = None
    discount: Decimal | None = None


class Decision(BaseModel):
    """Structured decision returned by every decision provider."""

    model_config = WIRE_CONFIG

    status: DecisionStatus
    counter_price: Decimal | None = None
    justification: str = ""
    alt_perks: list[Perk] = Field(default_factory=list)
    bundle_suggestions: list[BundleSuggestion] = Field(default_factory=list)

    @field_validator("alt_perks", "bundle_suggestions", mode="before")
    @classmethod
    def null_means_empty(cls, v: object) -> object:
        """Backends sometimes send ``null`` for an empty list."""
        return [] if v is None else v

    @field_validator("justification", mode="before")
    @classmethod
    def null_justification(cls, v: object) -> object:
        return "" if v is None else v


class PriorRound(BaseModel):
    """What a decision provider sees of an earlier round."""

    model_config = ConfigDict(frozen=True)

    round_number: int
    user_offer: Decimal
    status: DecisionStatus
    counter_price: Decimal | None = None


class DecisionContext(BaseModel):
    """Everything a decision provider may use to decide one round."""

    model_config = ConfigDict(frozen=True)

    sku: str
    product_name: LocalizedText
    base_price: Decimal
    floor_price: Decimal
    offer_price: Decimal
    current_round: int = Field(ge=1)
    max_rounds: int = Field(ge=1)
    user_segment: UserSegment
    stock_level: int
    clearance_flag: bool = False
    bundle_pairs: list[BundlePair] = Field(default_factory=list)
    perks: FallbackPerks = Field(default_factory=FallbackPerks)
    prior_rounds: list[PriorRound] = Field(default_factory=list)
    language: str = Language.EN.value

    @property
    def is_last_round(self) -> bool:
        return self.current_round >= self.max_rounds


class DecisionOutcome(BaseModel):
    """A decision plus which backend produced it and its raw metadata."""

    decision: Decision
    backend: str
    metadata: dict[str, Any] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


class FraudFlag(BaseModel):
    """A single fraud heuristic hit."""

    model_config = ConfigDict(frozen=True)

    flag: str
    severity: FraudSeverity
    timestamp: datetime


class Round(BaseModel):
    """One offer/decision exchange.  Never mutated after it is appended."""

    model_config = ConfigDict(frozen=True)

    round_number: int
    user_offer: Decimal
    decision: Decision
    timestamp: datetime
    backend: str = "deterministic"
    backend_metadata: dict[str, Any] = Field(default_factory=dict)


class OfferMetadata(BaseModel):
    """Request context captured with an offer."""

    language: str = Language.EN.value
    ip_address: str | None = None
    user_agent: str | None = None
    device_type: str | None = None
    referrer: str | None = None
    conversion_source: str = "product_page"


class SessionAnalytics(BaseModel):
    """Per-session analytics recorded as the negotiation progresses."""

    initial_offer: Decimal | None = None
    final_offer: Decimal | None = None
    discount_given: Decimal | None = None
    discount_pct: Decimal | None = None
    rounds_used: int = 0
    time_to_decision_seconds: int | None = None
    abandoned_at_round: int | None = None
    conversion_source: str = "product_page"


class NegotiationSession(BaseModel):
    """The central entity: one negotiation attempt for one line item.

    Identity, pricing bounds and limits are fixed at creation.  ``rounds``
    is append-only and ``status`` only ever leaves ``active``.
    """

    session_id: str
    sku: str
    user_id: str
    user_segment: UserSegment
    quantity: int = Field(ge=1)
    base_price: Decimal
    floor_price: Decimal
    max_rounds: int = Field(ge=1)
    current_round: int = 0
    rounds: list[Round] = Field(default_factory=list)
    status: SessionStatus = SessionStatus.ACTIVE
    created_at: datetime
    expires_at: datetime
    accepted_at: datetime | None = None
    final_price: Decimal | None = None
    final_perks: list[Perk] = Field(default_factory=list)
    discount_token: str | None = None
    discount_applied: bool = False
    fraud_flags: list[FraudFlag] = Field(default_factory=list)
    ip_address: str | None = None
    user_agent: str | None = None
    language: str = Language.EN.value
    device_type: str | None = None
    referrer: str | None = None
    analytics: SessionAnalytics = Field(default_factory=SessionAnalytics)
    version: int = 0

    @model_validator(mode="after")
    def floor_must_not_exceed_base(self) -> NegotiationSession:
        """Ensure floor_price does not exceed base_price."""
        if self.floor_price > self.base_price:
            raise ValueError(
                f"floor_price ({self.floor_price}) must not exceed base_price ({self.base_price})"
            )
        return self

    def is_expired(self, now: datetime) -> bool:
        """Return True once the absolute deadline has passed."""
        return now > self.expires_at

    def effective_status(self, now: datetime) -> SessionStatus:
        """Return the status with lazy expiry applied."""
        if self.status == SessionStatus.ACTIVE and self.is_expired(now):
            return SessionStatus.EXPIRED
        return self.status

    def can_negotiate(self, now: datetime) -> bool:
        """Return True if another offer may be processed."""
        return (
            self.effective_status(now) == SessionStatus.ACTIVE
            and self.current_round < self.max_rounds
        )

    def add_round(
        self,
        user_offer: Decimal,
        outcome: DecisionOutcome,
        now: datetime,
    ) -> Round:
        """Append a round and advance ``current_round`` by exactly one.

        Raises:
            ValueError: If every round has already been used.
        """
        if self.current_round >= self.max_rounds:
            raise ValueError(
                f"Session {self.session_id} already used all {self.max_rounds} rounds"
            )
        entry = Round(
            round_number=self.current_round + 1,
            user_offer=user_offer,
            decision=outcome.decision,
            timestamp=now,
            backend=outcome.backend,
            backend_metadata=outcome.metadata,
        )
        self.rounds.append(entry)
        self.current_round += 1
        return entry


# ---------------------------------------------------------------------------
# Results handed back to callers
# ---------------------------------------------------------------------------


class SessionSummary(BaseModel):
    """Response of ``start`` and ``continue``."""

    model_config = WIRE_CONFIG

    session_id: str
    status: DecisionStatus
    session_status: SessionStatus
    counter_price: Decimal | None = None
    justification: str = ""
    alt_perks: list[Perk] = Field(default_factory=list)
    bundle_suggestions: list[BundleSuggestion] = Field(default_factory=list)
    current_round: int
    max_rounds: int
    expires_at: datetime
    rate_limit_remaining: int
    discount_token: str | None = None


class RedemptionSummary(BaseModel):
    """Discount details handed to checkout when a token is redeemed."""

    model_config = WIRE_CONFIG

    sku: str
    original_price: Decimal
    discounted_price: Decimal
    discount: Decimal
    quantity: int
    expires_at: datetime
    perks: list[Perk] = Field(default_factory=list)
