"""Pydantic models for the catalog collaborators' data."""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from bargain.domain.models import NegotiationRule

AI_NEGOTIATION_FLAG = "ai_negotiation"


class Product(BaseModel):
    """What the engine needs to know about a catalog product."""

    model_config = ConfigDict(frozen=True)

    sku: str
    name: str
    price: Decimal = Field(ge=0)
    stock_level: int | None = Field(default=None, ge=0)
    is_on_clearance: bool = False
    min_bargain_price: Decimal | None = Field(default=None, ge=0)
    max_bargain_discount: Decimal | None = Field(default=None, ge=0, le=100)
    category: str | None = None

    @field_validator("price", "min_bargain_price", "max_bargain_discount", mode="before")
    @classmethod
    def float_via_str(cls, v: object) -> object:
        """Product services send JSON numbers; go through str to keep the digits."""
        if isinstance(v, float):
            return str(v)
        return v


class FeatureFlag(BaseModel):
    """A named switch with optional SKU, segment and rollout targeting."""

    model_config = ConfigDict(frozen=True)

    name: str
    enabled: bool = True
    rollout_percentage: int = Field(default=100, ge=0, le=100)
    target_skus: list[str] = Field(default_factory=list)
    target_segments: list[str] = Field(default_factory=list)


class CatalogConfig(BaseModel):
    """Contents of the catalog YAML file."""

    rules: list[NegotiationRule] = Field(default_factory=list)
    products: list[Product] = Field(default_factory=list)
    feature_flags: list[FeatureFlag] = Field(default_factory=list)
    order_counts: dict[str, int] = Field(default_factory=dict)
