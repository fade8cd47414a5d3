"""Resilient API call decorator with tenacity retry.

Retry 3 times with exponential backoff and jitter, then log the final
failure (forwarded to Sentry when it is configured) and re-raise.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeVar

import structlog
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

logger = structlog.get_logger()

F = TypeVar("F", bound=Callable[..., Any])


def log_final_failure(retry_state: RetryCallState) -> Any:
    """Log the exhausted call and re-raise its last exception.

    Args:
        retry_state: Tenacity retry state with attempt info and exception.
    """
    exception = retry_state.outcome.exception() if retry_state.outcome else None
    api_name = getattr(retry_state.fn, "_api_name", "unknown") if retry_state.fn else "unknown"

    logger.error(
        "api_call_failed_after_retries",
        api_name=api_name,
        attempts=retry_state.attempt_number,
        exception=str(exception),
    )
    # result() re-raises the original exception
    return retry_state.outcome.result() if retry_state.outcome else None


def _before_sleep_log(retry_state: RetryCallState) -> None:
    """Log a warning before each retry attempt.

    Args:
        retry_state: Tenacity retry state with attempt info.
    """
    api_name = getattr(retry_state.fn, "_api_name", "unknown") if retry_state.fn else "unknown"
    logger.warning(
        "retrying_api_call",
        api_name=api_name,
        attempt=retry_state.attempt_number,
        wait=retry_state.next_action.sleep if retry_state.next_action else 0,
    )


def resilient_api_call(
    api_name: str,
    *,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    attempts: int = 3,
    initial_wait: float = 1,
    max_wait: float = 30,
    jitter: float = 5,
) -> Callable[[F], F]:
    """Create a retry decorator for an API call.

    Returns a tenacity retry decorator configured with:
    - ``attempts`` attempts maximum (3 by default)
    - Exponential backoff with jitter (1s initial, 30s max, 5s jitter)
    - Warning log before each retry
    - Error log on final failure, then the original exception re-raised

    Args:
        api_name: Human-readable name for the API (used in logs).
        retry_on: Exception types worth retrying; anything else propagates
            immediately.
        attempts: Total attempts including the first call.
        initial_wait: First backoff in seconds.
        max_wait: Backoff cap in seconds.
        jitter: Maximum random jitter added to each wait.

    Returns:
        A decorator that wraps the function with retry logic.
    """

    def decorator(func: F) -> F:
        # Store api_name on function for the log callbacks
        func._api_name = api_name  # type: ignore[attr-defined]

        wrapped = retry(
            retry=retry_if_exception_type(retry_on),
            stop=stop_after_attempt(attempts),
            wait=wait_exponential_jitter(initial=initial_wait, max=max_wait, jitter=jitter),
            before_sleep=_before_sleep_log,
            retry_error_callback=log_final_failure,
            reraise=True,
        )(func)

        return wrapped  # type: ignore[return-value]

    return decorator
