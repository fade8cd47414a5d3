"""Tests for SessionStore: create, versioned save, lookups and activity counts."""

from __future__ import annotations

import sqlite3
from collections.abc import Callable
from datetime import timedelta
from decimal import Decimal

import pytest

from bargain.domain.errors import ConcurrentSessionUpdate, PersistenceFailure
from bargain.domain.models import (
    Decision,
    DecisionOutcome,
    FraudFlag,
    NegotiationSession,
)
from bargain.domain.types import DecisionStatus, FraudSeverity, SessionStatus
from bargain.state.schema import init_session_table, open_database
from bargain.state.store import SessionStore

START_PLUS = timedelta(minutes=1)
SessionFactory = Callable[..., NegotiationSession]


class TestCreateAndLoad:
    """Round trip of a full session through SQLite."""

    def test_create_sets_version_one(
        self, session_store: SessionStore, make_session: SessionFactory
    ) -> None:
        session = make_session()
        session_store.create(session)

        assert session.version == 1
        loaded = session_store.load("sess-1")
        assert loaded is not None
        assert loaded.version == 1

    def test_load_preserves_rounds_and_decimals(
        self, session_store: SessionStore, make_session: SessionFactory
    ) -> None:
        session = make_session(
            fraud_flags=[
                FraudFlag(
                    flag="extreme_lowball",
                    severity=FraudSeverity.MEDIUM,
                    timestamp=make_session().created_at,
                )
            ]
        )
        session.add_round(
            Decimal("50000.50"),
            DecisionOutcome(
                decision=Decision(status=DecisionStatus.COUNTER, counter_price=Decimal("92500")),
                backend="reasoning",
                metadata={"model": "m", "usage": {"input_tokens": 3}},
            ),
            session.created_at,
        )
        session_store.create(session)

        loaded = session_store.load("sess-1")

        assert loaded is not None
        assert loaded.rounds[0].user_offer == Decimal("50000.50")
        assert loaded.rounds[0].backend_metadata["usage"] == {"input_tokens": 3}
        assert loaded.fraud_flags[0].severity == FraudSeverity.MEDIUM
        assert loaded.created_at == session.created_at
        assert loaded.model_dump(exclude={"version"}) == session.model_dump(exclude={"version"})

    def test_missing_session(self, session_store: SessionStore) -> None:
        assert session_store.load("nope") is None

    def test_duplicate_id_is_persistence_failure(
        self, session_store: SessionStore, make_session: SessionFactory
    ) -> None:
        session_store.create(make_session())
        with pytest.raises(PersistenceFailure):
            session_store.create(make_session())


class TestSave:
    """Compare-and-swap on the row version."""

    def test_save_bumps_version(
        self, session_store: SessionStore, make_session: SessionFactory
    ) -> None:
        session = make_session()
        session_store.create(session)
        session.status = SessionStatus.REJECTED

        session_store.save(session)

        assert session.version == 2
        loaded = session_store.load("sess-1")
        assert loaded is not None
        assert loaded.status == SessionStatus.REJECTED
        assert loaded.version == 2

    def test_stale_copy_conflicts(
        self, session_store: SessionStore, make_session: SessionFactory
    ) -> None:
        session_store.create(make_session())
        first = session_store.load("sess-1")
        second = session_store.load("sess-1")
        assert first is not None and second is not None

        session_store.save(first)
        with pytest.raises(ConcurrentSessionUpdate) as exc_info:
            session_store.save(second)

        assert exc_info.value.expected_version == 1
        assert second.version == 1

    def test_save_unknown_session_conflicts(
        self, session_store: SessionStore, make_session: SessionFactory
    ) -> None:
        with pytest.raises(ConcurrentSessionUpdate):
            session_store.save(make_session(session_id="ghost"))


class TestTokenLookup:
    def test_load_by_token(
        self, session_store: SessionStore, make_session: SessionFactory
    ) -> None:
        session = make_session()
        session_store.create(session)
        session.discount_token = "a" * 32
        session_store.save(session)

        loaded = session_store.load_by_token("a" * 32)
        assert loaded is not None
        assert loaded.session_id == "sess-1"
        assert session_store.load_by_token("b" * 32) is None

    def test_tokens_are_unique(
        self, session_store: SessionStore, make_session: SessionFactory
    ) -> None:
        session_store.create(make_session(session_id="s1", discount_token="t" * 32))
        with pytest.raises(PersistenceFailure):
            session_store.create(make_session(session_id="s2", discount_token="t" * 32))


class TestActivityQueries:
    """Lookups behind the fraud heuristics, expiry sweep and analytics."""

    def test_count_sessions_for_user(
        self, session_store: SessionStore, make_session: SessionFactory
    ) -> None:
        base = make_session().created_at
        session_store.create(make_session(session_id="old", created_at=base - timedelta(days=2)))
        session_store.create(make_session(session_id="new1"))
        session_store.create(make_session(session_id="new2"))
        session_store.create(make_session(session_id="other", user_id="u2"))

        assert session_store.count_sessions_for_user_since("u1", base - timedelta(hours=24)) == 2

    def test_count_other_users_on_ip(
        self, session_store: SessionStore, make_session: SessionFactory
    ) -> None:
        for i, user in enumerate(["u1", "u2", "u3", "u3"]):
            session_store.create(make_session(session_id=f"s{i}", user_id=user))
        session_store.create(
            make_session(session_id="elsewhere", user_id="u4", ip_address="10.9.9.9")
        )
        since = make_session().created_at - timedelta(hours=1)

        assert session_store.count_distinct_other_users_for_ip_since("10.0.0.1", "u1", since) == 2

    def test_list_expired_active(
        self, session_store: SessionStore, make_session: SessionFactory
    ) -> None:
        session_store.create(make_session(session_id="live"))
        base = make_session().created_at
        stale = make_session(session_id="stale", expires_at=base + timedelta(minutes=5))
        session_store.create(stale)
        done = make_session(
            session_id="done",
            expires_at=base + timedelta(minutes=5),
            status=SessionStatus.ACCEPTED,
        )
        session_store.create(done)

        expired = session_store.list_expired_active(base + timedelta(minutes=10))

        assert [s.session_id for s in expired] == ["stale"]
        assert session_store.list_expired_active(base + timedelta(minutes=10), limit=0) == []

    def test_list_created_between(
        self, session_store: SessionStore, make_session: SessionFactory
    ) -> None:
        base = make_session().created_at
        session_store.create(make_session(session_id="a", created_at=base + START_PLUS))
        session_store.create(make_session(session_id="b", created_at=base))
        session_store.create(make_session(session_id="c", created_at=base + timedelta(days=1)))

        listed = session_store.list_created_between(base, base + timedelta(days=1))
        assert [s.session_id for s in listed] == ["b", "a"]


class TestFailures:
    def test_ping_ok(self, session_store: SessionStore) -> None:
        session_store.ping()

    def test_closed_connection_is_persistence_failure(self) -> None:
        conn = open_database(":memory:")
        init_session_table(conn)
        store = SessionStore(conn)
        conn.close()

        with pytest.raises(PersistenceFailure, match="ping"):
            store.ping()

    def test_missing_table(self) -> None:
        store = SessionStore(sqlite3.connect(":memory:"))
        with pytest.raises(PersistenceFailure):
            store.load("x")
