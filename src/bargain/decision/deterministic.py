"""Rule-based negotiator usable without any network call.

A pure function of the decision context: concede a growing share of the
gap between list price and offer each round, never below the floor, and
accept anything at or above the floor.  Justifications are picked
deterministically from a small phrase bank per language.
"""

from __future__ import annotations

from decimal import Decimal

from bargain.decision.validation import repair_counter_price
from bargain.domain.models import Decision, DecisionContext, Perk
from bargain.domain.types import DecisionStatus, Language, PerkType
from bargain.pricing.bounds import round_price

CURRENCY = "RWF"
LOW_STOCK_THRESHOLD = 10
PERK_PROXIMITY = Decimal("1.1")

# Share of the gap between base price and offer conceded per round.
CONCESSION_SCHEDULE: dict[int, Decimal] = {
    1: Decimal("0.15"),
    2: Decimal("0.30"),
}
FINAL_CONCESSION = Decimal("0.50")

ACCEPT_PHRASES: dict[str, list[str]] = {
    Language.EN: [
        "You've got a deal! {offer} {currency} it is. You're getting excellent value on {product}!",
        "Perfect! I can do {offer} {currency} for you. That's a great price for the quality.",
        "Deal! {offer} {currency} is fair. {product} is one of our best!",
    ],
    Language.RW: [
        "Yego! Twemeje {offer} {currency}. Urabona amahirwe meza!",
        "Byiza! Ndashobora gukora {offer} {currency} kuberako uri umukiriya mwiza.",
        "Emeza! {offer} {currency} ni igiciro cyiza kuri {product}.",
    ],
}

REJECT_PHRASES: dict[str, list[str]] = {
    Language.EN: [
        "I really wish I could, but {offer} {currency} is below our cost. The lowest I can go "
        "is {floor} {currency} for {product}.",
        "I understand you're looking for a good deal, but {offer} {currency} won't work. "
        "{floor} {currency} is already a great price for {product}.",
    ],
    Language.RW: [
        "Tubabaje cyane, ariko ntidushobora kwemera munsi ya {floor} {currency}. "
        "{product} ni igicuruzwa cy'ireme.",
        "Mbabarira, {offer} {currency} ni hasi cyane. Igiciro cyacu cya nyuma ni "
        "{floor} {currency}.",
    ],
}

COUNTER_PHRASES: dict[str, list[str]] = {
    Language.EN: [
        "I hear you, but {product} is premium quality. Let me do {counter} {currency} for you, "
        "that's already a fantastic deal!",
        "I'll be honest with you: {counter} {currency} is a great price for {product}.",
        "{offer} {currency} is a bit low for the quality. How about {counter} {currency}?",
    ],
    Language.RW: [
        "Ndabona icyifuzo cyawe, ariko {product} ni igicuruzwa cy'ireme. Ndashobora gutanga "
        "{counter} {currency}.",
        "Reka nkubwire ukuri: {counter} {currency} ni igiciro cyiza kuri {product}.",
        "{offer} {currency} ni hasi gato. Ndashobora gukora {counter} {currency}.",
    ],
}

LOW_STOCK_SUFFIX = {
    Language.EN: " Only {stock} left in stock!",
    Language.RW: " Bisigaye {stock} gusa!",
}

CONSOLATION_SHIPPING = {
    Language.EN: "But I can throw in free shipping if you meet our price!",
    Language.RW: "Ariko ndashobora gutanga kohereza ubuntu niba wemera igiciro cyacu!",
}

PROXIMITY_SHIPPING = {
    Language.EN: "Plus free shipping if you accept!",
    Language.RW: "Kohereza ubuntu niba wemera!",
}


def _lang(context: DecisionContext) -> str:
    return Language.RW if context.language == Language.RW else Language.EN


def _pick(phrases: dict[str, list[str]], context: DecisionContext) -> str:
    bank = phrases[_lang(context)]
    return bank[(context.current_round - 1) % len(bank)]


def _money(value: Decimal) -> str:
    return f"{value:,}"


def concession_fraction(current_round: int) -> Decimal:
    """Share of the gap conceded in *current_round*."""
    return CONCESSION_SCHEDULE.get(current_round, FINAL_CONCESSION)


class DeterministicNegotiator:
    """Fallback decision provider with no external dependencies."""

    name = "deterministic"

    def negotiate(self, context: DecisionContext) -> Decision:
        """Decide one round from the context alone."""
        offer = context.offer_price
        base = context.base_price
        floor = context.floor_price
        lang = _lang(context)
        fields = {
            "offer": _money(offer),
            "floor": _money(floor),
            "currency": CURRENCY,
            "product": context.product_name.for_language(lang),
        }

        if offer >= floor:
            return Decision(
                status=DecisionStatus.ACCEPT,
                counter_price=offer,
                justification=_pick(ACCEPT_PHRASES, context).format(**fields),
            )

        if context.is_last_round:
            perks: list[Perk] = []
            if context.perks.free_shipping.enabled:
                perks.append(
                    Perk(type=PerkType.FREE_SHIPPING, description=CONSOLATION_SHIPPING[lang])
                )
            return Decision(
                status=DecisionStatus.REJECT,
                justification=_pick(REJECT_PHRASES, context).format(**fields),
                alt_perks=perks,
            )

        gap = base - offer
        fraction = concession_fraction(context.current_round)
        counter = max(floor, round_price(base - gap * fraction))
        if counter <= offer:
            counter = repair_counter_price(offer, floor)

        justification = _pick(COUNTER_PHRASES, context).format(counter=_money(counter), **fields)
        if context.stock_level < LOW_STOCK_THRESHOLD:
            justification += LOW_STOCK_SUFFIX[lang].format(stock=context.stock_level)

        perks = []
        if (
            context.current_round >= 2
            and offer < floor * PERK_PROXIMITY
            and context.perks.free_shipping.enabled
        ):
            perks.append(Perk(type=PerkType.FREE_SHIPPING, description=PROXIMITY_SHIPPING[lang]))

        status = (
            DecisionStatus.FINAL
            if context.current_round >= context.max_rounds - 1
            else DecisionStatus.COUNTER
        )
        return Decision(
            status=status,
            counter_price=counter,
            justification=justification,
            alt_perks=perks,
        )
