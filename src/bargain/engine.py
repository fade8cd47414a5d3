"""Negotiation engine: wires guards, rules, decisions and persistence together.

Exposes the three caller-facing operations (``start``, ``continue_negotiation``
and ``redeem``) plus read helpers and the logical expiry sweep.  Each call is
one logical transaction against one session:

- guards run first and never mutate anything,
- the round is decided and applied to an in-memory copy of the session,
- the session is written once (insert on ``start``, versioned update on
  ``continue``/``redeem``); the replay guard only remembers an offer after
  that write committed, so a failed write can be retried with the same offer.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from decimal import Decimal

import structlog

from bargain.audit.logger import AuditLogger
from bargain.catalog.interfaces import Catalog, FeatureFlags, PurchaseHistory, RuleProvider
from bargain.catalog.models import Product
from bargain.catalog.segments import resolve_segment
from bargain.decision.provider import DecisionProvider
from bargain.domain.errors import (
    AlreadyRedeemed,
    ConcurrentSessionUpdate,
    DuplicateOffer,
    FeatureDisabled,
    FraudBlocked,
    InsufficientStock,
    InvalidOffer,
    InvalidToken,
    NegotiationError,
    ProductUnavailable,
    RateLimitExceeded,
    SessionExpired,
    SessionNotFound,
    TokenExpired,
)
from bargain.domain.models import (
    DecisionContext,
    NegotiationRule,
    NegotiationSession,
    OfferMetadata,
    PriorRound,
    RedemptionSummary,
    Round,
    SessionSummary,
)
from bargain.domain.types import DecisionStatus, SessionStatus, UserSegment
from bargain.guards.fraud import FraudHeuristics, has_high_severity
from bargain.guards.locks import SessionLocks
from bargain.guards.rate_limit import RateLimiter
from bargain.guards.replay import ReplayGuard
from bargain.observability.metrics import (
    DEALS_ACCEPTED,
    DISCOUNTS_REDEEMED,
    GUARD_REJECTIONS,
    OFFERS_PROCESSED,
    SESSIONS_STARTED,
)
from bargain.pricing.bounds import MAX_PRICE, compute_bounds
from bargain.pricing.rules import synthesize_default_rule
from bargain.state.analytics import record_acceptance, record_rejection
from bargain.state.store import SessionStore
from bargain.state_machine import SessionEvent, SessionStateMachine, event_for_decision
from bargain.tokens import mint_discount_token, new_session_id

logger = structlog.get_logger()

Clock = Callable[[], datetime]

DEFAULT_SESSION_TTL = timedelta(minutes=30)


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


def _validate_offer(offer_price: Decimal, quantity: int = 1) -> None:
    if not offer_price.is_finite() or offer_price <= 0:
        raise InvalidOffer(f"Offer price must be a positive number, got {offer_price}")
    if offer_price > MAX_PRICE:
        raise InvalidOffer(f"Offer price must not exceed {MAX_PRICE}, got {offer_price}")
    if quantity < 1:
        raise InvalidOffer(f"Quantity must be at least 1, got {quantity}")


class NegotiationEngine:
    """Orchestrates negotiation sessions.

    Args:
        store: Durable session store (also the fraud activity lookup).
        rules: Rule provider for per-SKU configuration.
        decisions: Decision provider (reasoning backend with deterministic fallback).
        rate_limiter: Per-user attempt limiter.
        replay_guard: Per-session duplicate offer guard.
        fraud: Fraud heuristics run before a session is created.
        catalog: Product catalog used to synthesise missing rules.
        flags: Feature flag lookup; ``None`` means always enabled.
        history: Purchase history for segment resolution.
        audit: Optional audit trail writer.
        locks: Per-session locks; a private instance is created if omitted.
        session_ttl: Fixed lifetime of a session.
        default_segment: Segment used when purchase history is unavailable.
        fallback_base_price: List price for SKUs unknown to both rules and
            catalog; ``None`` refuses such SKUs.
        token_length: Hex characters in a discount token.
        clock: Source of the current time.
    """

    def __init__(
        self,
        *,
        store: SessionStore,
        rules: RuleProvider,
        decisions: DecisionProvider,
        rate_limiter: RateLimiter,
        replay_guard: ReplayGuard,
        fraud: FraudHeuristics,
        catalog: Catalog | None = None,
        flags: FeatureFlags | None = None,
        history: PurchaseHistory | None = None,
        audit: AuditLogger | None = None,
        locks: SessionLocks | None = None,
        session_ttl: timedelta = DEFAULT_SESSION_TTL,
        default_segment: UserSegment = UserSegment.RETURNING,
        fallback_base_price: Decimal | None = None,
        token_length: int = 32,
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self._rules = rules
        self._decisions = decisions
        self._rate_limiter = rate_limiter
        self._replay = replay_guard
        self._fraud = fraud
        self._catalog = catalog
        self._flags = flags
        self._history = history
        self._audit_log = audit
        self._locks = locks or SessionLocks()
        self._session_ttl = session_ttl
        self._default_segment = default_segment
        self._fallback_base_price = fallback_base_price
        self._token_length = token_length
        self._clock = clock

    def now(self) -> datetime:
        return self._clock()

    # ------------------------------------------------------------------
    # start
    # ------------------------------------------------------------------

    def start(
        self,
        sku: str,
        user_id: str,
        offer_price: Decimal,
        quantity: int = 1,
        metadata: OfferMetadata | None = None,
    ) -> SessionSummary:
        """Open a session and decide its first round.

        Raises:
            InvalidOffer: Non-positive offer or quantity.
            RateLimitExceeded: The user used up the current window.
            FeatureDisabled: Negotiation is off for this user, SKU or segment.
            ProductUnavailable: No rule, no catalog entry, no fallback price.
            InsufficientStock: Fewer units in stock than requested.
            FraudBlocked: A high-severity fraud flag was raised.
            PersistenceFailure: The session could not be stored.
        """
        meta = metadata or OfferMetadata()
        _validate_offer(offer_price, quantity)
        now = self._clock()
        log = logger.bind(sku=sku, user_id=user_id)

        rate = self._rate_limiter.check(user_id, now)
        if not rate.allowed:
            raise self._refused(RateLimitExceeded(rate.reset_at), user_id=user_id, sku=sku)

        segment = resolve_segment(self._history, user_id, self._default_segment)
        if not self._feature_enabled(user_id, sku, segment):
            raise self._refused(FeatureDisabled(sku), user_id=user_id, sku=sku)

        rule = self._lookup_rule(sku)
        if rule is not None and not rule.enabled:
            raise self._refused(FeatureDisabled(sku), user_id=user_id, sku=sku)
        if rule is None:
            rule = self._synthesize_rule(sku, allow_fallback_price=True)
            if rule is None:
                raise self._refused(ProductUnavailable(sku), user_id=user_id, sku=sku)

        if rule.stock_level < quantity:
            raise self._refused(
                InsufficientStock(sku, quantity, rule.stock_level), user_id=user_id, sku=sku
            )

        bounds = compute_bounds(rule, segment, quantity)
        fraud_flags = self._fraud.assess(
            user_id, offer_price, bounds.base_price, meta.ip_address, now
        )
        if has_high_severity(fraud_flags):
            raise self._refused(FraudBlocked(fraud_flags), user_id=user_id, sku=sku)

        session = NegotiationSession(
            session_id=new_session_id(),
            sku=sku,
            user_id=user_id,
            user_segment=segment,
            quantity=quantity,
            base_price=bounds.base_price,
            floor_price=bounds.floor_price,
            max_rounds=rule.max_rounds,
            created_at=now,
            expires_at=now + self._session_ttl,
            fraud_flags=fraud_flags,
            ip_address=meta.ip_address,
            user_agent=meta.user_agent,
            language=meta.language,
            device_type=meta.device_type,
            referrer=meta.referrer,
        )
        session.analytics.initial_offer = offer_price
        session.analytics.conversion_source = meta.conversion_source

        previous_status = session.status
        entry = self.process_offer(session, rule, offer_price, meta.language, now)
        self._store.create(session)
        self._replay.record(session.session_id, offer_price)

        SESSIONS_STARTED.inc()
        log.info(
            "negotiation_started",
            session_id=session.session_id,
            segment=segment,
            base_price=str(session.base_price),
            floor_price=str(session.floor_price),
            decision=entry.decision.status,
        )
        self._audit(lambda: self._require_audit().log_session_started(session))
        self._after_round(session, entry, previous_status)
        return self._summary(session, entry, rate.remaining)

    # ------------------------------------------------------------------
    # continue
    # ------------------------------------------------------------------

    def continue_negotiation(
        self,
        session_id: str,
        offer_price: Decimal,
        metadata: OfferMetadata | None = None,
    ) -> SessionSummary:
        """Decide the next round of an open session.

        Raises:
            InvalidOffer: Non-positive offer.
            SessionNotFound: Unknown session id.
            SessionExpired: Session closed, past its deadline, or out of rounds.
            DuplicateOffer: The same offer value was already made in this session.
            RateLimitExceeded: The user used up the current window.
            ProductUnavailable: The product's rule was disabled or removed.
            ConcurrentSessionUpdate: Another request saved the session first.
            PersistenceFailure: The round could not be stored.
        """
        _validate_offer(offer_price)
        try:
            with self._locks.hold(session_id):
                return self._continue_locked(session_id, offer_price, metadata)
        except TimeoutError:
            raise ConcurrentSessionUpdate(session_id) from None

    def _continue_locked(
        self,
        session_id: str,
        offer_price: Decimal,
        metadata: OfferMetadata | None,
    ) -> SessionSummary:
        now = self._clock()
        session = self._store.load(session_id)
        if session is None:
            raise self._refused(SessionNotFound(session_id), session_id=session_id)

        refusal_ctx = {"session_id": session_id, "user_id": session.user_id, "sku": session.sku}
        if session.status != SessionStatus.ACTIVE:
            raise self._refused(SessionExpired(session_id, "closed"), **refusal_ctx)
        if session.is_expired(now):
            raise self._refused(SessionExpired(session_id, "expired"), **refusal_ctx)
        if session.current_round >= session.max_rounds:
            raise self._refused(SessionExpired(session_id, "round_limit"), **refusal_ctx)

        if self._is_replay(session, offer_price):
            raise self._refused(DuplicateOffer(session_id), **refusal_ctx)

        rate = self._rate_limiter.check(session.user_id, now)
        if not rate.allowed:
            raise self._refused(RateLimitExceeded(rate.reset_at), **refusal_ctx)

        rule = self._lookup_rule(session.sku)
        if rule is not None and not rule.enabled:
            raise self._refused(ProductUnavailable(session.sku), **refusal_ctx)
        if rule is None:
            rule = self._synthesize_rule(session.sku, allow_fallback_price=False)
            if rule is None:
                raise self._refused(ProductUnavailable(session.sku), **refusal_ctx)

        language = metadata.language if metadata is not None else session.language
        session.fraud_flags.extend(self._fraud.offer_flags(offer_price, session.base_price, now))

        previous_status = session.status
        entry = self.process_offer(session, rule, offer_price, language, now)
        self._store.save(session)
        self._replay.record(session.session_id, offer_price)

        logger.info(
            "negotiation_continued",
            session_id=session.session_id,
            sku=session.sku,
            round=entry.round_number,
            decision=entry.decision.status,
        )
        self._after_round(session, entry, previous_status)
        return self._summary(session, entry, rate.remaining)

    # ------------------------------------------------------------------
    # processOffer (shared core)
    # ------------------------------------------------------------------

    def process_offer(
        self,
        session: NegotiationSession,
        rule: NegotiationRule,
        offer_price: Decimal,
        language: str,
        now: datetime,
    ) -> Round:
        """Decide one round and apply it to *session* in memory.

        Never raises for decision backend problems; the caller persists the
        session afterwards.

        Returns:
            The round appended to ``session.rounds``.
        """
        context = self.build_context(session, rule, offer_price, language)
        outcome = self._decisions.decide(context)
        decision = outcome.decision

        machine = SessionStateMachine.from_snapshot(session.status)
        new_status = machine.trigger(event_for_decision(decision.status))

        entry = session.add_round(offer_price, outcome, now)
        session.status = new_status

        if decision.status == DecisionStatus.ACCEPT:
            session.final_price = offer_price
            session.accepted_at = now
            session.final_perks = list(decision.alt_perks)
            session.discount_token = mint_discount_token(
                session.session_id, offer_price, now, self._token_length
            )
            record_acceptance(session, offer_price, now)
        elif decision.status == DecisionStatus.REJECT:
            record_rejection(session, offer_price)
        else:
            session.analytics.final_offer = offer_price
            session.analytics.rounds_used = session.current_round

        return entry

    def build_context(
        self,
        session: NegotiationSession,
        rule: NegotiationRule,
        offer_price: Decimal,
        language: str,
    ) -> DecisionContext:
        """Assemble the decision context for the session's next round."""
        return DecisionContext(
            sku=session.sku,
            product_name=rule.product_name,
            base_price=session.base_price,
            floor_price=session.floor_price,
            offer_price=offer_price,
            current_round=session.current_round + 1,
            max_rounds=session.max_rounds,
            user_segment=session.user_segment,
            stock_level=rule.stock_level,
            clearance_flag=rule.clearance_flag,
            bundle_pairs=rule.bundle_pairs,
            perks=rule.fallback_perks,
            prior_rounds=[
                PriorRound(
                    round_number=r.round_number,
                    user_offer=r.user_offer,
                    status=r.decision.status,
                    counter_price=r.decision.counter_price,
                )
                for r in session.rounds
            ],
            language=language,
        )

    # ------------------------------------------------------------------
    # redeem
    # ------------------------------------------------------------------

    def redeem(self, token: str) -> RedemptionSummary:
        """Apply an accepted session's discount exactly once.

        Raises:
            InvalidToken: No session carries this token.
            AlreadyRedeemed: The token was already applied.
            TokenExpired: The session's deadline has passed.
            PersistenceFailure: The redemption could not be stored.
        """
        found = self._store.load_by_token(token)
        if found is None:
            raise self._refused(InvalidToken())

        try:
            with self._locks.hold(found.session_id):
                return self._redeem_locked(found.session_id, token)
        except TimeoutError:
            raise ConcurrentSessionUpdate(found.session_id) from None

    def _redeem_locked(self, session_id: str, token: str) -> RedemptionSummary:
        session = self._store.load(session_id)
        if session is None or session.discount_token != token:
            raise self._refused(InvalidToken(), session_id=session_id)

        refusal_ctx = {"session_id": session_id, "user_id": session.user_id, "sku": session.sku}
        if session.discount_applied:
            raise self._refused(AlreadyRedeemed(), **refusal_ctx)
        if session.is_expired(self._clock()):
            raise self._refused(TokenExpired(), **refusal_ctx)

        summary = self._redemption_summary(session)
        session.discount_applied = True
        try:
            self._store.save(session)
        except ConcurrentSessionUpdate:
            raise self._refused(AlreadyRedeemed(), **refusal_ctx) from None

        DISCOUNTS_REDEEMED.inc()
        logger.info("discount_redeemed", session_id=session_id, sku=session.sku)
        self._audit(lambda: self._require_audit().log_redemption(session))
        return summary

    # ------------------------------------------------------------------
    # Read helpers and maintenance
    # ------------------------------------------------------------------

    def get_session(self, session_id: str) -> NegotiationSession:
        """Load a session, reporting lazy expiry in its status.

        Raises:
            SessionNotFound: Unknown session id.
        """
        session = self._store.load(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        session.status = session.effective_status(self._clock())
        return session

    def list_rules(self, sku: str | None = None) -> list[NegotiationRule]:
        """Enabled rules, optionally restricted to one SKU."""
        return [
            r for r in self._rules.list_rules() if r.enabled and (sku is None or r.sku == sku)
        ]

    def expire_stale_sessions(self, limit: int = 500) -> int:
        """Mark active sessions past their deadline as expired.

        Also drops the expired sessions' replay digests and any closed
        rate-limit windows.
        """
        now = self._clock()
        expired = expire_stale_sessions(
            self._store, self._audit_log, now, limit, on_expired=self._replay.forget
        )
        self._rate_limiter.purge(now)
        return expired

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _after_round(
        self, session: NegotiationSession, entry: Round, previous_status: SessionStatus
    ) -> None:
        OFFERS_PROCESSED.labels(status=entry.decision.status.value).inc()
        self._audit(lambda: self._require_audit().log_offer_processed(session, entry))

        if session.status == previous_status:
            return
        if session.status in (SessionStatus.ACCEPTED, SessionStatus.REJECTED):
            self._replay.forget(session.session_id)
        event = event_for_decision(entry.decision.status)
        self._audit(
            lambda: self._require_audit().log_state_transition(
                session, previous_status.value, session.status.value, event.value
            )
        )
        if session.status == SessionStatus.ACCEPTED:
            DEALS_ACCEPTED.inc()
            logger.info(
                "deal_accepted",
                session_id=session.session_id,
                sku=session.sku,
                final_price=str(session.final_price),
                rounds=session.current_round,
            )
            self._audit(lambda: self._require_audit().log_agreement(session))
        elif session.status == SessionStatus.REJECTED:
            logger.info("negotiation_rejected", session_id=session.session_id, sku=session.sku)
            self._audit(lambda: self._require_audit().log_rejection(session))

    def _summary(
        self, session: NegotiationSession, entry: Round, remaining: int
    ) -> SessionSummary:
        decision = entry.decision
        return SessionSummary(
            session_id=session.session_id,
            status=decision.status,
            session_status=session.status,
            counter_price=decision.counter_price,
            justification=decision.justification,
            alt_perks=decision.alt_perks,
            bundle_suggestions=decision.bundle_suggestions,
            current_round=session.current_round,
            max_rounds=session.max_rounds,
            expires_at=session.expires_at,
            rate_limit_remaining=remaining,
            discount_token=session.discount_token,
        )

    @staticmethod
    def _redemption_summary(session: NegotiationSession) -> RedemptionSummary:
        final_price = session.final_price if session.final_price is not None else session.base_price
        return RedemptionSummary(
            sku=session.sku,
            original_price=session.base_price,
            discounted_price=final_price,
            discount=session.base_price - final_price,
            quantity=session.quantity,
            expires_at=session.expires_at,
            perks=session.final_perks,
        )

    def _is_replay(self, session: NegotiationSession, offer_price: Decimal) -> bool:
        if self._replay.is_replay(session.session_id, offer_price):
            return True
        # Rounds are durable; the guard's memory is per process.
        return any(r.user_offer == offer_price for r in session.rounds)

    def _feature_enabled(self, user_id: str, sku: str, segment: UserSegment) -> bool:
        if self._flags is None:
            return True
        try:
            return self._flags.is_enabled(user_id, sku, segment)
        except Exception:
            logger.warning("feature_flag_lookup_failed", sku=sku, user_id=user_id, exc_info=True)
            return True

    def _lookup_rule(self, sku: str) -> NegotiationRule | None:
        try:
            return self._rules.get_rule(sku)
        except Exception:
            logger.warning("rule_lookup_failed", sku=sku, exc_info=True)
            return None

    def _synthesize_rule(self, sku: str, *, allow_fallback_price: bool) -> NegotiationRule | None:
        product: Product | None = None
        if self._catalog is not None:
            try:
                product = self._catalog.get_product(sku)
            except Exception:
                logger.warning("catalog_lookup_failed", sku=sku, exc_info=True)

        if product is None and allow_fallback_price and self._fallback_base_price is not None:
            logger.info("using_fallback_base_price", sku=sku, price=str(self._fallback_base_price))
            product = Product(sku=sku, name=sku, price=self._fallback_base_price)

        if product is None:
            return None
        logger.info("default_rule_synthesized", sku=sku)
        return synthesize_default_rule(product)

    def _refused(self, exc: NegotiationError, **context: str | None) -> NegotiationError:
        GUARD_REJECTIONS.labels(reason=exc.code).inc()
        logger.info("negotiation_refused", reason=exc.code, detail=str(exc), **context)
        self._audit(
            lambda: self._require_audit().log_guard_rejection(exc.code, str(exc), **context)
        )
        return exc

    def _require_audit(self) -> AuditLogger:
        assert self._audit_log is not None
        return self._audit_log

    def _audit(self, write: Callable[[], object]) -> None:
        if self._audit_log is None:
            return
        try:
            write()
        except Exception:
            logger.exception("audit_write_failed")


def expire_stale_sessions(
    store: SessionStore,
    audit: AuditLogger | None,
    now: datetime,
    limit: int = 500,
    on_expired: Callable[[str], None] | None = None,
) -> int:
    """Mark active sessions whose deadline passed as ``expired``.

    Expiry is logical: rows are kept.  A session saved concurrently is
    skipped and picked up by the next sweep.  *on_expired* is called with
    the id of each session expired.

    Returns:
        The number of sessions expired.
    """
    expired = 0
    for session in store.list_expired_active(now, limit):
        machine = SessionStateMachine.from_snapshot(session.status)
        session.status = machine.trigger(SessionEvent.EXPIRE)
        session.analytics.abandoned_at_round = session.current_round
        session.analytics.rounds_used = session.current_round
        try:
            store.save(session)
        except ConcurrentSessionUpdate:
            logger.info("expire_skipped_concurrent_update", session_id=session.session_id)
            continue
        expired += 1
        if on_expired is not None:
            on_expired(session.session_id)
        if audit is not None:
            try:
                audit.log_state_transition(
                    session, SessionStatus.ACTIVE.value, session.status.value, SessionEvent.EXPIRE
                )
            except Exception:
                logger.exception("audit_write_failed", session_id=session.session_id)

    logger.info("stale_sessions_expired", count=expired)
    return expired
