"""Tests for domain enumerations."""

from bargain.domain.types import (
    DecisionStatus,
    FraudSeverity,
    Language,
    PerkType,
    SessionStatus,
    UserSegment,
)


class TestEnums:
    """Wire values of the domain enums."""

    def test_user_segment_values(self) -> None:
        assert [s.value for s in UserSegment] == ["new", "returning", "vip"]

    def test_session_status_values(self) -> None:
        assert {s.value for s in SessionStatus} == {"active", "accepted", "rejected", "expired"}

    def test_decision_status_values(self) -> None:
        assert {s.value for s in DecisionStatus} == {"counter", "accept", "reject", "final"}

    def test_perk_types_are_camel_case(self) -> None:
        assert PerkType.FREE_SHIPPING == "freeShipping"
        assert PerkType.EXTENDED_WARRANTY == "extendedWarranty"

    def test_str_enums_compare_to_strings(self) -> None:
        assert FraudSeverity.HIGH == "high"
        assert Language("rw") is Language.RW
