"""Tests for the rule-based fallback negotiator."""

from __future__ import annotations

from collections.abc import Callable
from decimal import Decimal

import pytest

from bargain.decision.deterministic import DeterministicNegotiator, concession_fraction
from bargain.domain.models import DecisionContext, FallbackPerks, FreeShippingPerk
from bargain.domain.types import DecisionStatus, PerkType

ContextFactory = Callable[..., DecisionContext]


@pytest.fixture
def negotiator() -> DeterministicNegotiator:
    return DeterministicNegotiator()


class TestConcessionSchedule:
    @pytest.mark.parametrize(
        ("current_round", "fraction"),
        [(1, "0.15"), (2, "0.30"), (3, "0.50"), (5, "0.50")],
    )
    def test_fraction_per_round(self, current_round: int, fraction: str) -> None:
        assert concession_fraction(current_round) == Decimal(fraction)


class TestAccept:
    """Offers at or above the floor are accepted as offered."""

    def test_offer_above_floor(
        self, negotiator: DeterministicNegotiator, phone_context: ContextFactory
    ) -> None:
        decision = negotiator.negotiate(phone_context(offer_price=Decimal("80000")))

        assert decision.status == DecisionStatus.ACCEPT
        assert decision.counter_price == Decimal("80000")
        assert "80,000 RWF" in decision.justification

    def test_offer_exactly_at_floor(
        self, negotiator: DeterministicNegotiator, phone_context: ContextFactory
    ) -> None:
        decision = negotiator.negotiate(phone_context(offer_price=Decimal("75000")))
        assert decision.status == DecisionStatus.ACCEPT


class TestCounter:
    """Offers below the floor are countered with a growing concession."""

    def test_first_round(
        self, negotiator: DeterministicNegotiator, phone_context: ContextFactory
    ) -> None:
        decision = negotiator.negotiate(phone_context())

        assert decision.status == DecisionStatus.COUNTER
        assert decision.counter_price == Decimal("92500")
        assert decision.alt_perks == []

    def test_second_of_three_rounds_is_final(
        self, negotiator: DeterministicNegotiator, phone_context: ContextFactory
    ) -> None:
        decision = negotiator.negotiate(
            phone_context(offer_price=Decimal("60000"), current_round=2)
        )

        assert decision.status == DecisionStatus.FINAL
        assert decision.counter_price == Decimal("88000")
        assert [p.type for p in decision.alt_perks] == [PerkType.FREE_SHIPPING]

    def test_counter_never_below_floor(
        self, negotiator: DeterministicNegotiator, phone_context: ContextFactory
    ) -> None:
        decision = negotiator.negotiate(
            phone_context(offer_price=Decimal("10000"), current_round=2, max_rounds=5)
        )
        # 100000 - 90000 * 0.30 = 73000, below the floor.
        assert decision.counter_price == Decimal("75000")
        assert decision.status == DecisionStatus.COUNTER

    def test_low_stock_mentioned(
        self, negotiator: DeterministicNegotiator, phone_context: ContextFactory
    ) -> None:
        decision = negotiator.negotiate(phone_context(stock_level=3))
        assert decision.justification.endswith("Only 3 left in stock!")

    def test_kinyarwanda_phrasing(
        self, negotiator: DeterministicNegotiator, phone_context: ContextFactory
    ) -> None:
        decision = negotiator.negotiate(phone_context(language="rw"))
        assert "Telefoni X1" in decision.justification
        assert "92,500 RWF" in decision.justification

    def test_same_context_same_decision(
        self, negotiator: DeterministicNegotiator, phone_context: ContextFactory
    ) -> None:
        context = phone_context()
        assert negotiator.negotiate(context) == negotiator.negotiate(context)


class TestLastRound:
    """Below the floor on the last round the negotiator walks away."""

    def test_reject_with_consolation_shipping(
        self, negotiator: DeterministicNegotiator, phone_context: ContextFactory
    ) -> None:
        decision = negotiator.negotiate(phone_context(current_round=3))

        assert decision.status == DecisionStatus.REJECT
        assert decision.counter_price is None
        assert "75,000 RWF" in decision.justification
        assert [p.type for p in decision.alt_perks] == [PerkType.FREE_SHIPPING]

    def test_no_perk_when_shipping_disabled(
        self, negotiator: DeterministicNegotiator, phone_context: ContextFactory
    ) -> None:
        perks = FallbackPerks(free_shipping=FreeShippingPerk(enabled=False))
        decision = negotiator.negotiate(phone_context(current_round=3, perks=perks))
        assert decision.alt_perks == []
