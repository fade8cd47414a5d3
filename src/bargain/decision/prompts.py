"""Prompt templates for the reasoning backend.

Templates use Python string placeholders ({variable_name}) for injection of
the negotiation context.  The system prompt sets the negotiator persona;
the user prompt carries the numbers and the strict JSON response format.
"""

from __future__ import annotations

from decimal import Decimal

from bargain.domain.models import DecisionContext
from bargain.domain.types import Language

CURRENCY = "RWF"

NEGOTIATOR_SYSTEM_PROMPT_EN = """You are a skilled sales negotiator for an online store. \
You help customers reach a fair price while protecting the store's margin.

Your negotiation style:
- Be warm, friendly, and conversational
- Emphasize product value and quality before conceding on price
- Start with minimal discounts and only increase them when necessary
- Offer perks (free shipping, gifts, warranty) before deeper price cuts
- Say no politely when an offer is too low
"""

NEGOTIATOR_SYSTEM_PROMPT_RW = """Uri umucuruzi w'inararibonye ku iduka rya interineti. \
Ufasha abakiriya kubona igiciro gikwiye utabangamiye inyungu y'iduka. \
Sobanura agaciro k'igicuruzwa, tanga igabanuka rito, kandi ntutinye kuvuga "oya" \
niba icyifuzo kiri hasi cyane.
"""

NEGOTIATION_USER_PROMPT = """CONTEXT:
- Product: {product_name} (SKU: {sku})
- Base price: {base_price} {currency}
- Floor price: {floor_price} {currency} (never go below this)
- Customer offer: {offer_price} {currency}
- Round: {current_round}/{max_rounds}
- Customer segment: {segment}
- Stock level: {stock_level}{notes}

PRIOR ROUNDS:
{prior_rounds}

AVAILABLE BUNDLES:
{bundles}

AVAILABLE PERKS:
{perks}

RULES:
- counterPrice must be between {floor_price} and {base_price} {currency}
- counterPrice must ALWAYS be higher than the customer offer ({offer_price} {currency})
- Accept only if the offer is at or above the floor price
- On the final round, reject offers below {reject_below} {currency} and offer perks as consolation
- Write the justification in {language_name}, 2-3 sentences, warm and persuasive

RESPOND IN JSON FORMAT, and return ONLY valid JSON, nothing else:
{{
  "status": "counter|accept|reject|final",
  "counterPrice": number (required if status is counter or final),
  "justification": "text shown to the customer",
  "altPerks": [{{"type": "freeShipping|freeGift|extendedWarranty", "description": "text"}}],
  "bundleSuggestions": [{{"sku": "SKU", "discount": number}}]
}}"""

_LANGUAGE_NAMES: dict[str, str] = {Language.EN: "English", Language.RW: "Kinyarwanda"}


def _money(value: Decimal | None) -> str:
    return "N/A" if value is None else f"{value:,}"


def _format_prior_rounds(context: DecisionContext) -> str:
    if not context.prior_rounds:
        return "- none"
    return "\n".join(
        f"- Round {r.round_number}: customer offered {_money(r.user_offer)} {CURRENCY}, "
        f"you answered {r.status} at {_money(r.counter_price)} {CURRENCY}"
        for r in context.prior_rounds
    )


def _format_bundles(context: DecisionContext) -> str:
    if not context.bundle_pairs:
        return "- none"
    return "\n".join(
        f"- {b.bundle_sku}: {_money(b.bundle_price)} {CURRENCY}" for b in context.bundle_pairs
    )


def _format_perks(context: DecisionContext) -> str:
    perks = context.perks
    lines: list[str] = []
    if perks.free_shipping.enabled:
        lines.append("- Free shipping")
    if perks.free_gift.enabled:
        gift = perks.free_gift.gift_description
        label = gift.for_language(context.language) if gift else "a gift"
        lines.append(f"- Free gift: {label}")
    if perks.extended_warranty.enabled:
        lines.append(f"- Extended warranty: {perks.extended_warranty.months} months")
    return "\n".join(lines) or "- none"


def build_prompts(context: DecisionContext) -> tuple[str, str]:
    """Build the system and user prompts for one negotiation round.

    Args:
        context: The round's decision context.

    Returns:
        A ``(system_prompt, user_prompt)`` tuple.
    """
    system = (
        NEGOTIATOR_SYSTEM_PROMPT_RW
        if context.language == Language.RW
        else NEGOTIATOR_SYSTEM_PROMPT_EN
    )
    notes = ""
    if context.clearance_flag:
        notes += "\n- CLEARANCE SALE (a bigger discount is acceptable)"
    if context.stock_level < 10:
        notes += f"\n- Only {context.stock_level} left: create some urgency"

    user = NEGOTIATION_USER_PROMPT.format(
        product_name=context.product_name.for_language(context.language),
        sku=context.sku,
        base_price=_money(context.base_price),
        floor_price=_money(context.floor_price),
        offer_price=_money(context.offer_price),
        currency=CURRENCY,
        current_round=context.current_round,
        max_rounds=context.max_rounds,
        segment=context.user_segment,
        stock_level=context.stock_level,
        notes=notes,
        prior_rounds=_format_prior_rounds(context),
        bundles=_format_bundles(context),
        perks=_format_perks(context),
        reject_below=_money((context.floor_price * Decimal("1.05")).quantize(Decimal("1"))),
        language_name=_LANGUAGE_NAMES.get(context.language, "English"),
    )
    return system, user
