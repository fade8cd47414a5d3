"""Retry helpers for calls to external collaborators."""

from bargain.resilience.retry import resilient_api_call

__all__ = ["resilient_api_call"]
