"""Tests for per-session analytics and daily per-SKU aggregates."""

from __future__ import annotations

from collections.abc import Callable
from datetime import date, timedelta
from decimal import Decimal

from bargain.domain.models import FraudFlag, NegotiationSession
from bargain.domain.types import FraudSeverity, SessionStatus, UserSegment
from bargain.state.analytics import (
    aggregate_daily,
    aggregate_sessions,
    record_acceptance,
    record_rejection,
)
from bargain.state.store import SessionStore

SessionFactory = Callable[..., NegotiationSession]
DAY = date(2026, 3, 1)


def _accepted(
    make_session: SessionFactory, session_id: str, price: str, **kw: object
) -> NegotiationSession:
    session = make_session(session_id=session_id, current_round=2, **kw)
    session.status = SessionStatus.ACCEPTED
    session.final_price = Decimal(price)
    record_acceptance(session, Decimal(price), session.created_at + timedelta(seconds=90))
    return session


class TestRecordOutcome:
    def test_acceptance(self, make_session: SessionFactory) -> None:
        session = _accepted(make_session, "s1", "80000")
        analytics = session.analytics

        assert analytics.final_offer == Decimal("80000")
        assert analytics.discount_given == Decimal("20000")
        assert analytics.discount_pct == Decimal("20.00")
        assert analytics.rounds_used == 2
        assert analytics.time_to_decision_seconds == 90

    def test_discount_pct_rounded(self, make_session: SessionFactory) -> None:
        session = _accepted(make_session, "s1", "88888")
        assert session.analytics.discount_pct == Decimal("11.11")

    def test_rejection(self, make_session: SessionFactory) -> None:
        session = make_session(current_round=3)
        record_rejection(session, Decimal("60000"))

        assert session.analytics.final_offer == Decimal("60000")
        assert session.analytics.abandoned_at_round == 3
        assert session.analytics.rounds_used == 3


class TestAggregateSessions:
    """Rolling one SKU's day up."""

    def test_counts_and_rates(self, make_session: SessionFactory) -> None:
        sessions = [
            _accepted(make_session, "a1", "80000"),
            _accepted(make_session, "a2", "90000", user_segment=UserSegment.VIP),
            make_session(session_id="r1", status=SessionStatus.REJECTED, current_round=3),
            make_session(
                session_id="x1",
                status=SessionStatus.EXPIRED,
                current_round=1,
                fraud_flags=[
                    FraudFlag(
                        flag="extreme_lowball",
                        severity=FraudSeverity.MEDIUM,
                        timestamp=make_session().created_at,
                    )
                ],
            ),
        ]

        agg = aggregate_sessions("PHONE-X1", DAY, sessions)

        assert agg.total_sessions == 4
        assert (agg.accepted_count, agg.rejected_count, agg.expired_count) == (2, 1, 1)
        assert agg.active_count == 0
        assert agg.conversion_rate == Decimal("50.00")
        assert agg.avg_rounds == Decimal("2.00")
        assert agg.avg_discount_pct == Decimal("15.00")
        assert agg.avg_time_to_decision_seconds == Decimal("90.00")
        assert agg.total_revenue == Decimal("170000")
        assert agg.total_discount_given == Decimal("30000")
        assert agg.round_distribution == {1: 1, 2: 2, 3: 1}
        assert agg.fraud_flag_count == 1

        vip = agg.segments["vip"]
        assert (vip.count, vip.conversions) == (1, 1)
        assert vip.conversion_rate == Decimal("100.00")
        assert agg.segments["returning"].conversion_rate == Decimal("33.33")

    def test_no_accepted_sessions(self, make_session: SessionFactory) -> None:
        agg = aggregate_sessions("PHONE-X1", DAY, [make_session()])

        assert agg.conversion_rate == Decimal("0.00")
        assert agg.avg_discount_pct == Decimal("0")
        assert agg.total_revenue == Decimal("0")


class TestAggregateDaily:
    def test_groups_by_sku_for_one_day(
        self, session_store: SessionStore, make_session: SessionFactory
    ) -> None:
        base = make_session().created_at
        session_store.create(_accepted(make_session, "a", "80000"))
        session_store.create(make_session(session_id="b", sku="SPEAKER-MINI"))
        session_store.create(make_session(session_id="c", created_at=base + timedelta(days=1)))

        aggregates = aggregate_daily(session_store, DAY)

        assert [a.sku for a in aggregates] == ["PHONE-X1", "SPEAKER-MINI"]
        assert aggregates[0].total_sessions == 1
        assert aggregates[0].accepted_count == 1

    def test_quiet_day(self, session_store: SessionStore) -> None:
        assert aggregate_daily(session_store, date(2026, 1, 1)) == []
