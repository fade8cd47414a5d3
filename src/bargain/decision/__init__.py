"""Pluggable negotiation brain: reasoning backend, deterministic negotiator, clamp."""

from bargain.decision.client import get_anthropic_client
from bargain.decision.deterministic import DeterministicNegotiator, concession_fraction
from bargain.decision.provider import DecisionBackend, DecisionProvider
from bargain.decision.reasoning import ReasoningBackend, parse_decision_text, strip_code_fences
from bargain.decision.validation import clamp_decision, repair_counter_price

__all__ = [
    "DecisionBackend",
    "DecisionProvider",
    "DeterministicNegotiator",
    "ReasoningBackend",
    "clamp_decision",
    "concession_fraction",
    "get_anthropic_client",
    "parse_decision_text",
    "repair_counter_price",
    "strip_code_fences",
]
