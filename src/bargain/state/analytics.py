"""Per-session analytics and per-SKU daily aggregates.

Session analytics are filled in by the engine as a negotiation progresses;
:func:`aggregate_daily` rolls a day's sessions up per SKU for reporting.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from datetime import UTC, date, datetime, time, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol

from pydantic import BaseModel, Field

from bargain.domain.models import NegotiationSession
from bargain.domain.types import SessionStatus

TWO_PLACES = Decimal("0.01")
HUNDRED = Decimal("100")


class SessionSource(Protocol):
    def list_created_between(self, start: datetime, end: datetime) -> list[NegotiationSession]: ...


class SegmentStats(BaseModel):
    count: int = 0
    conversions: int = 0
    conversion_rate: Decimal = Decimal("0")
    avg_discount_pct: Decimal = Decimal("0")


class DailySkuAggregate(BaseModel):
    """One SKU's negotiation activity on one day."""

    sku: str
    day: date
    total_sessions: int
    accepted_count: int
    rejected_count: int
    expired_count: int
    active_count: int
    conversion_rate: Decimal
    avg_rounds: Decimal
    avg_discount_pct: Decimal
    avg_time_to_decision_seconds: Decimal
    total_revenue: Decimal
    total_discount_given: Decimal
    round_distribution: dict[int, int] = Field(default_factory=dict)
    segments: dict[str, SegmentStats] = Field(default_factory=dict)
    fraud_flag_count: int = 0


def _q(value: Decimal) -> Decimal:
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def _mean(values: list[Decimal]) -> Decimal:
    if not values:
        return Decimal("0")
    return _q(sum(values, Decimal("0")) / len(values))


def _rate(part: int, whole: int) -> Decimal:
    if whole == 0:
        return Decimal("0")
    return _q(Decimal(part) * HUNDRED / Decimal(whole))


def record_acceptance(session: NegotiationSession, final_price: Decimal, now: datetime) -> None:
    """Fill in discount and timing analytics for an accepted session."""
    analytics = session.analytics
    discount = session.base_price - final_price
    analytics.final_offer = final_price
    analytics.discount_given = discount
    analytics.discount_pct = (
        _q(discount * HUNDRED / session.base_price) if session.base_price else Decimal("0")
    )
    analytics.rounds_used = session.current_round
    analytics.time_to_decision_seconds = int((now - session.created_at).total_seconds())


def record_rejection(session: NegotiationSession, final_offer: Decimal) -> None:
    """Record where a rejected negotiation was abandoned."""
    analytics = session.analytics
    analytics.final_offer = final_offer
    analytics.rounds_used = session.current_round
    analytics.abandoned_at_round = session.current_round


def aggregate_sessions(
    sku: str, day: date, sessions: list[NegotiationSession]
) -> DailySkuAggregate:
    """Aggregate one SKU's sessions for *day*."""
    by_status = Counter(s.status for s in sessions)
    accepted = [s for s in sessions if s.status == SessionStatus.ACCEPTED]

    discount_pcts = [
        s.analytics.discount_pct for s in accepted if s.analytics.discount_pct is not None
    ]
    decision_times = [
        Decimal(s.analytics.time_to_decision_seconds)
        for s in accepted
        if s.analytics.time_to_decision_seconds is not None
    ]

    segments: dict[str, SegmentStats] = {}
    grouped: dict[str, list[NegotiationSession]] = defaultdict(list)
    for s in sessions:
        grouped[s.user_segment.value].append(s)
    for segment, members in grouped.items():
        converted = [m for m in members if m.status == SessionStatus.ACCEPTED]
        segments[segment] = SegmentStats(
            count=len(members),
            conversions=len(converted),
            conversion_rate=_rate(len(converted), len(members)),
            avg_discount_pct=_mean(
                [
                    m.analytics.discount_pct
                    for m in converted
                    if m.analytics.discount_pct is not None
                ]
            ),
        )

    return DailySkuAggregate(
        sku=sku,
        day=day,
        total_sessions=len(sessions),
        accepted_count=by_status[SessionStatus.ACCEPTED],
        rejected_count=by_status[SessionStatus.REJECTED],
        expired_count=by_status[SessionStatus.EXPIRED],
        active_count=by_status[SessionStatus.ACTIVE],
        conversion_rate=_rate(len(accepted), len(sessions)),
        avg_rounds=_mean([Decimal(s.current_round) for s in sessions]),
        avg_discount_pct=_mean(discount_pcts),
        avg_time_to_decision_seconds=_mean(decision_times),
        total_revenue=sum((s.final_price or Decimal("0") for s in accepted), Decimal("0")),
        total_discount_given=sum(
            (s.analytics.discount_given or Decimal("0") for s in accepted), Decimal("0")
        ),
        round_distribution=dict(sorted(Counter(s.current_round for s in sessions).items())),
        segments=segments,
        fraud_flag_count=sum(len(s.fraud_flags) for s in sessions),
    )


def aggregate_daily(store: SessionSource, day: date) -> list[DailySkuAggregate]:
    """Per-SKU aggregates for sessions created on *day* (UTC).

    Args:
        store: Anything that can list sessions by creation time.
        day: The calendar day to aggregate.

    Returns:
        One ``DailySkuAggregate`` per SKU with activity, sorted by SKU.
    """
    start = datetime.combine(day, time.min, tzinfo=UTC)
    sessions = store.list_created_between(start, start + timedelta(days=1))

    by_sku: dict[str, list[NegotiationSession]] = defaultdict(list)
    for session in sessions:
        by_sku[session.sku].append(session)

    return [aggregate_sessions(sku, day, by_sku[sku]) for sku in sorted(by_sku)]
