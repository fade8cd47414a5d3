"""Centralized, typed configuration using pydantic-settings.

Provides a single ``Settings`` class backed by ``.env`` file and environment
variables, a cached ``get_settings()`` accessor, and a ``validate_settings()``
startup gate that reports missing optional integrations.

IMPORTANT: This module has ZERO imports from the ``bargain`` package to
prevent circular imports.  Only stdlib, pydantic, pydantic_settings, and
structlog are used.
"""

from __future__ import annotations

import sys
from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Literal

import structlog
from pydantic import Field, SecretStr, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = structlog.get_logger()


class Settings(BaseSettings):
    """Application settings loaded from environment variables and ``.env`` file.

    ``SecretStr`` fields prevent accidental leaks in logs or error output.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # -- General ---------------------------------------------------------------
    production: bool = False
    api_port: int = 8000

    # -- Storage ---------------------------------------------------------------
    database_path: Path = Path("data/negotiation.db")

    # -- Catalog collaborators -------------------------------------------------
    catalog_config_path: Path = Path("config/negotiation.yaml")
    catalog_url: str = ""
    fallback_base_price: Decimal | None = None

    # -- Reasoning backend / Anthropic -----------------------------------------
    anthropic_api_key: SecretStr = SecretStr("")
    reasoning_model: str = "claude-haiku-4-5"
    reasoning_timeout_seconds: float = Field(default=20.0, gt=0)
    reasoning_max_tokens: int = Field(default=800, gt=0)

    # -- Negotiation policy ----------------------------------------------------
    negotiation_rate_limit: int = Field(default=10, ge=1)
    negotiation_rate_window_seconds: int = Field(default=3600, ge=1)
    session_ttl_minutes: int = Field(default=30, ge=1)
    default_segment: Literal["new", "returning", "vip"] = "returning"
    discount_token_length: int = Field(default=32, ge=16, le=64)

    # -- Observability ---------------------------------------------------------
    sentry_dsn: str = ""


@lru_cache
def get_settings() -> Settings:
    """Return a cached ``Settings`` instance.

    The ``@lru_cache`` decorator ensures environment variables are parsed
    exactly once.  Call ``get_settings.cache_clear()`` in tests to reset.

    Returns:
        The application ``Settings``.
    """
    try:
        return Settings()
    except ValidationError as exc:
        # Log only the structured errors list -- never the full exception
        # which may contain raw SecretStr values.
        logger.error("settings_validation_failed", errors=exc.errors())
        sys.exit(1)


def validate_settings(settings: Settings) -> list[str]:
    """Report missing optional integrations at startup.

    Nothing here is fatal: without an Anthropic key every offer is decided
    by the deterministic negotiator, and without a catalog file the engine
    only knows what the HTTP catalog returns.  In **production** mode each
    problem is logged as an error, in development as a warning.

    Args:
        settings: The loaded application settings.

    Returns:
        The list of problems found (empty when everything is configured).
    """
    problems: list[str] = []

    if not settings.anthropic_api_key.get_secret_value():
        problems.append("ANTHROPIC_API_KEY is empty; offers use the deterministic negotiator")

    if not settings.catalog_config_path.exists():
        problems.append(f"Catalog config not found: {settings.catalog_config_path}")

    if not problems:
        logger.info("settings_validation_passed")
        return problems

    for problem in problems:
        if settings.production:
            logger.error("settings_problem", detail=problem)
        else:
            logger.warning("settings_problem_dev", detail=problem)
    return problems
