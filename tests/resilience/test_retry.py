"""Tests for the resilient_api_call retry decorator."""

from collections.abc import Callable
from typing import Any

import pytest

from bargain.resilience.retry import resilient_api_call


def _fast(**kwargs: Any) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Retry decorator with no backoff so tests run instantly."""
    return resilient_api_call("test_api", initial_wait=0, max_wait=0, jitter=0, **kwargs)


class TestResilientApiCall:
    def test_success_first_try(self) -> None:
        @_fast()
        def call() -> str:
            return "ok"

        assert call() == "ok"

    def test_retries_then_succeeds(self) -> None:
        attempts: list[int] = []

        @_fast()
        def flaky() -> str:
            attempts.append(1)
            if len(attempts) < 3:
                raise ConnectionError("blip")
            return "ok"

        assert flaky() == "ok"
        assert len(attempts) == 3

    def test_reraises_original_after_exhaustion(self) -> None:
        attempts: list[int] = []

        @_fast(attempts=2)
        def broken() -> None:
            attempts.append(1)
            raise ConnectionError("down")

        with pytest.raises(ConnectionError, match="down"):
            broken()
        assert len(attempts) == 2

    def test_non_retryable_propagates_immediately(self) -> None:
        attempts: list[int] = []

        @_fast(retry_on=(ConnectionError,))
        def invalid() -> None:
            attempts.append(1)
            raise ValueError("bad input")

        with pytest.raises(ValueError):
            invalid()
        assert len(attempts) == 1
