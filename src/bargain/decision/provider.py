"""Decision provider that never fails: primary backend first, rules second.

Every decision, whichever variant produced it, is passed through
:func:`bargain.decision.validation.clamp_decision` before it is returned.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol

import structlog

from bargain.decision.deterministic import DeterministicNegotiator
from bargain.decision.validation import clamp_decision
from bargain.domain.models import DecisionContext, DecisionOutcome
from bargain.observability.metrics import DECISION_FALLBACKS

logger = structlog.get_logger()


class DecisionBackend(Protocol):
    name: str

    def decide(self, context: DecisionContext) -> DecisionOutcome: ...


FallbackListener = Callable[[DecisionContext, Exception], None]


class DecisionProvider:
    """Produce a clamped decision for every context.

    Args:
        primary: Optional backend tried first (usually ``ReasoningBackend``).
        fallback: The deterministic negotiator.
        on_fallback: Optional callback told about each primary failure
            (the engine uses it to write an audit entry).
    """

    def __init__(
        self,
        primary: DecisionBackend | None = None,
        fallback: DeterministicNegotiator | None = None,
        on_fallback: FallbackListener | None = None,
    ) -> None:
        self._primary = primary
        self._fallback = fallback or DeterministicNegotiator()
        self._on_fallback = on_fallback

    @property
    def has_primary(self) -> bool:
        return self._primary is not None

    def decide(self, context: DecisionContext) -> DecisionOutcome:
        """Decide one round.  Never raises for backend problems."""
        if self._primary is not None:
            try:
                # Clamping untrusted output can fail too; it falls back the same way.
                return self._clamped(self._primary.decide(context), context)
            except Exception as exc:
                self._record_fallback(context, exc)

        decision = self._fallback.negotiate(context)
        return self._clamped(
            DecisionOutcome(decision=decision, backend=self._fallback.name),
            context,
        )

    def _clamped(self, outcome: DecisionOutcome, context: DecisionContext) -> DecisionOutcome:
        return outcome.model_copy(update={"decision": clamp_decision(outcome.decision, context)})

    def _record_fallback(self, context: DecisionContext, exc: Exception) -> None:
        DECISION_FALLBACKS.inc()
        logger.warning(
            "decision_backend_fallback",
            sku=context.sku,
            round=context.current_round,
            error=str(exc),
            error_type=type(exc).__name__,
        )
        if self._on_fallback is not None:
            try:
                self._on_fallback(context, exc)
            except Exception:
                logger.exception("fallback_listener_failed", sku=context.sku)
