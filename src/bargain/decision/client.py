"""Anthropic client factory for the reasoning backend."""

from __future__ import annotations

from anthropic import Anthropic

from bargain.config import Settings


def get_anthropic_client(settings: Settings) -> Anthropic | None:
    """Create an Anthropic client, or ``None`` when no API key is configured.

    SDK-level retries are disabled: a failed reasoning call falls back to the
    deterministic negotiator instead of being retried.

    Args:
        settings: Application settings carrying the key and timeout.

    Returns:
        Configured Anthropic client instance, or ``None``.
    """
    api_key = settings.anthropic_api_key.get_secret_value()
    if not api_key:
        return None
    return Anthropic(
        api_key=api_key,
        timeout=settings.reasoning_timeout_seconds,
        max_retries=0,
    )
