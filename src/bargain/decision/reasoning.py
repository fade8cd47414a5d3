"""Decision provider backed by the Anthropic Messages API.

The model is asked for a strict JSON object.  Anything other than a
parseable decision with a valid ``status`` is a hard failure: the caller
falls back to the deterministic negotiator and the call is not retried.
"""

from __future__ import annotations

import json
import re
import time
from typing import Any

import anthropic
import structlog
from pydantic import ValidationError

from bargain.decision.prompts import build_prompts
from bargain.domain.errors import DecisionBackendFailure
from bargain.domain.models import Decision, DecisionContext, DecisionOutcome
from bargain.pricing.bounds import MAX_PRICE

logger = structlog.get_logger()

_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def strip_code_fences(text: str) -> str:
    """Remove a surrounding markdown code fence, if any."""
    return _FENCE.sub("", text.strip()).strip()


def parse_decision_text(text: str) -> Decision:
    """Parse a raw model response into a ``Decision``.

    Args:
        text: The model's text output, optionally fenced as ```json.

    Returns:
        The parsed (not yet clamped) decision.

    Raises:
        DecisionBackendFailure: If the text is not a JSON object with a
            valid ``status`` and an in-range ``counterPrice``.
    """
    try:
        payload = json.loads(strip_code_fences(text))
    except json.JSONDecodeError as exc:
        raise DecisionBackendFailure(f"Response is not valid JSON: {exc}") from exc

    if not isinstance(payload, dict):
        raise DecisionBackendFailure("Response JSON is not an object")

    try:
        decision = Decision.model_validate(payload)
    except ValidationError as exc:
        raise DecisionBackendFailure(f"Response does not match the decision schema: {exc}") from exc

    price = decision.counter_price
    if price is not None and not (price.is_finite() and 0 <= price <= MAX_PRICE):
        raise DecisionBackendFailure(f"counterPrice out of range: {price}")
    return decision


class ReasoningBackend:
    """Ask Claude for a negotiation decision.

    Args:
        client: Configured Anthropic client (its timeout bounds each call).
        model: Model ID to use.
        max_tokens: Response budget.
    """

    name = "reasoning"

    def __init__(self, client: anthropic.Anthropic, model: str, max_tokens: int = 800) -> None:
        self._client = client
        self._model = model
        self._max_tokens = max_tokens

    def decide(self, context: DecisionContext) -> DecisionOutcome:
        """Return the model's decision with the raw exchange as metadata.

        Raises:
            DecisionBackendFailure: On API errors, timeouts, or an unusable
                response.
        """
        system_prompt, user_prompt = build_prompts(context)
        started = time.monotonic()

        try:
            response = self._client.messages.create(
                model=self._model,
                max_tokens=self._max_tokens,
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
            )
        except anthropic.APIError as exc:
            raise DecisionBackendFailure(f"Reasoning call failed: {exc}") from exc

        processing_time_ms = int((time.monotonic() - started) * 1000)

        try:
            raw_text: str = response.content[0].text  # type: ignore[union-attr]
        except (IndexError, AttributeError) as exc:
            raise DecisionBackendFailure("Reasoning response has no text content") from exc

        decision = parse_decision_text(raw_text)

        metadata: dict[str, Any] = {
            "model": self._model,
            "prompt": user_prompt,
            "raw_response": raw_text,
            "processing_time_ms": processing_time_ms,
            "usage": {
                "input_tokens": response.usage.input_tokens,
                "output_tokens": response.usage.output_tokens,
            },
        }
        logger.info(
            "reasoning_decision",
            sku=context.sku,
            round=context.current_round,
            status=decision.status,
            processing_time_ms=processing_time_ms,
        )
        return DecisionOutcome(decision=decision, backend=self.name, metadata=metadata)
