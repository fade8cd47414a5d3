"""HTTP routes for the negotiation engine.

Routes are mounted under ``/api/negotiation``.  The engine is synchronous,
so every handler runs it in a worker thread via ``asyncio.to_thread``.
Domain errors are turned into JSON error envelopes by the handler that
:func:`register_error_handlers` installs.
"""

from __future__ import annotations

import asyncio
import math
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

import structlog
from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from bargain.domain.errors import (
    AlreadyRedeemed,
    ConcurrentSessionUpdate,
    DuplicateOffer,
    FeatureDisabled,
    FraudBlocked,
    InsufficientStock,
    InvalidOffer,
    InvalidToken,
    NegotiationError,
    PersistenceFailure,
    ProductUnavailable,
    RateLimitExceeded,
    SessionExpired,
    SessionNotFound,
    TokenExpired,
)
from bargain.domain.models import (
    WIRE_CONFIG,
    LocalizedText,
    NegotiationRule,
    NegotiationSession,
    OfferMetadata,
    Perk,
)
from bargain.domain.types import DecisionStatus, Language, SessionStatus
from bargain.engine import NegotiationEngine

logger = structlog.get_logger()

router = APIRouter(prefix="/api/negotiation")

STATUS_CODES: dict[type[NegotiationError], int] = {
    InvalidOffer: 400,
    FeatureDisabled: 403,
    FraudBlocked: 403,
    SessionNotFound: 404,
    InvalidToken: 404,
    ProductUnavailable: 404,
    DuplicateOffer: 409,
    AlreadyRedeemed: 409,
    InsufficientStock: 409,
    ConcurrentSessionUpdate: 409,
    SessionExpired: 410,
    TokenExpired: 410,
    RateLimitExceeded: 429,
    PersistenceFailure: 503,
}


# ---------------------------------------------------------------------------
# Request and response bodies
# ---------------------------------------------------------------------------


class StartRequest(BaseModel):
    model_config = WIRE_CONFIG

    sku: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    offer_price: Decimal
    quantity: int = 1
    language: Language = Language.EN
    device_type: str | None = None
    referrer: str | None = None
    conversion_source: str = "product_page"


class ContinueRequest(BaseModel):
    model_config = WIRE_CONFIG

    session_id: str = Field(min_length=1)
    offer_price: Decimal
    language: Language | None = None


class RedeemRequest(BaseModel):
    model_config = WIRE_CONFIG

    token: str = Field(min_length=1)


class RoundView(BaseModel):
    model_config = WIRE_CONFIG

    round_number: int
    user_offer: Decimal
    status: DecisionStatus
    counter_price: Decimal | None = None
    justification: str = ""
    timestamp: datetime


class SessionView(BaseModel):
    """Public view of a session (no IP address, user agent or fraud flags)."""

    model_config = WIRE_CONFIG

    session_id: str
    sku: str
    status: SessionStatus
    quantity: int
    base_price: Decimal
    current_round: int
    max_rounds: int
    rounds: list[RoundView]
    final_price: Decimal | None = None
    final_perks: list[Perk] = Field(default_factory=list)
    discount_token: str | None = None
    discount_applied: bool = False
    created_at: datetime
    expires_at: datetime

    @classmethod
    def from_session(cls, session: NegotiationSession) -> SessionView:
        return cls(
            session_id=session.session_id,
            sku=session.sku,
            status=session.status,
            quantity=session.quantity,
            base_price=session.base_price,
            current_round=session.current_round,
            max_rounds=session.max_rounds,
            rounds=[
                RoundView(
                    round_number=r.round_number,
                    user_offer=r.user_offer,
                    status=r.decision.status,
                    counter_price=r.decision.counter_price,
                    justification=r.decision.justification,
                    timestamp=r.timestamp,
                )
                for r in session.rounds
            ],
            final_price=session.final_price,
            final_perks=session.final_perks,
            discount_token=session.discount_token,
            discount_applied=session.discount_applied,
            created_at=session.created_at,
            expires_at=session.expires_at,
        )


class RuleView(BaseModel):
    """Public view of a rule.  The configured minimum price stays private."""

    model_config = WIRE_CONFIG

    sku: str
    product_name: LocalizedText
    base_price: Decimal
    max_rounds: int
    clearance_flag: bool
    stock_level: int

    @classmethod
    def from_rule(cls, rule: NegotiationRule) -> RuleView:
        return cls(
            sku=rule.sku,
            product_name=rule.product_name,
            base_price=rule.base_price,
            max_rounds=rule.max_rounds,
            clearance_flag=rule.clearance_flag,
            stock_level=rule.stock_level,
        )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _engine(request: Request) -> NegotiationEngine:
    engine: NegotiationEngine = request.app.state.services["engine"]
    return engine


def _client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def _ok(data: BaseModel | list[BaseModel]) -> dict[str, Any]:
    if isinstance(data, list):
        payload: Any = [item.model_dump(mode="json", by_alias=True) for item in data]
    else:
        payload = data.model_dump(mode="json", by_alias=True)
    return {"success": True, "data": payload}


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.post("/start")
async def start_negotiation(body: StartRequest, request: Request) -> dict[str, Any]:
    """Open a negotiation session with the buyer's first offer."""
    metadata = OfferMetadata(
        language=body.language.value,
        ip_address=_client_ip(request),
        user_agent=request.headers.get("user-agent"),
        device_type=body.device_type,
        referrer=body.referrer or request.headers.get("referer"),
        conversion_source=body.conversion_source,
    )
    summary = await asyncio.to_thread(
        _engine(request).start,
        body.sku,
        body.user_id,
        body.offer_price,
        body.quantity,
        metadata,
    )
    return _ok(summary)


@router.post("/continue")
async def continue_negotiation(body: ContinueRequest, request: Request) -> dict[str, Any]:
    """Submit the buyer's next offer in an open session."""
    metadata = None
    if body.language is not None:
        metadata = OfferMetadata(
            language=body.language.value,
            ip_address=_client_ip(request),
            user_agent=request.headers.get("user-agent"),
        )
    summary = await asyncio.to_thread(
        _engine(request).continue_negotiation, body.session_id, body.offer_price, metadata
    )
    return _ok(summary)


@router.post("/redeem")
async def redeem_discount(body: RedeemRequest, request: Request) -> dict[str, Any]:
    """Apply an accepted discount at checkout (once per token)."""
    result = await asyncio.to_thread(_engine(request).redeem, body.token)
    return _ok(result)


@router.get("/session/{session_id}")
async def get_session(session_id: str, request: Request) -> dict[str, Any]:
    session = await asyncio.to_thread(_engine(request).get_session, session_id)
    return _ok(SessionView.from_session(session))


@router.get("/rules")
async def list_rules(request: Request, sku: str | None = None) -> dict[str, Any]:
    rules = await asyncio.to_thread(_engine(request).list_rules, sku)
    return _ok([RuleView.from_rule(rule) for rule in rules])


# ---------------------------------------------------------------------------
# Error envelopes
# ---------------------------------------------------------------------------


def status_code_for(exc: NegotiationError) -> int:
    """HTTP status for a domain error (500 for kinds with no mapping)."""
    for kind, code in STATUS_CODES.items():
        if isinstance(exc, kind):
            return code
    return 500


def error_body(exc: NegotiationError) -> dict[str, Any]:
    """JSON body for a domain error, with hints the caller can act on."""
    body: dict[str, Any] = {
        "success": False,
        "error": exc.code,
        "detail": str(exc),
        "retryable": exc.retryable,
    }
    if isinstance(exc, RateLimitExceeded):
        body["resetAt"] = exc.reset_at.isoformat()
    elif isinstance(exc, SessionExpired):
        body["reason"] = exc.reason
    elif isinstance(exc, FraudBlocked):
        body["flags"] = [f.flag for f in exc.flags]
    elif isinstance(exc, InsufficientStock):
        body["available"] = exc.available
    return body


def register_error_handlers(app: FastAPI) -> None:
    """Install the ``NegotiationError`` handler on *app*."""

    @app.exception_handler(NegotiationError)
    async def negotiation_error(request: Request, exc: NegotiationError) -> JSONResponse:
        code = status_code_for(exc)
        if code >= 500:
            logger.error("negotiation_request_failed", error=exc.code, detail=str(exc))
        headers: dict[str, str] = {}
        if isinstance(exc, RateLimitExceeded):
            wait = (exc.reset_at - datetime.now(tz=UTC)).total_seconds()
            headers["Retry-After"] = str(max(math.ceil(wait), 1))
        return JSONResponse(content=error_body(exc), status_code=code, headers=headers)
