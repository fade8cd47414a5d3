"""Fraud heuristics run before a session is created.

Three checks, each producing at most one flag:

- ``extreme_lowball``: offer below half the base price (medium).
- ``excessive_negotiations``: more than 20 sessions by this user in the
  trailing 24 hours (high).
- ``multi_account_ip``: more than 5 other users negotiating from the same
  IP in the trailing hour (high).

Any high-severity flag blocks session creation.  The history checks are
best-effort: a failing lookup is logged and skipped.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Protocol

import structlog

from bargain.domain.models import FraudFlag
from bargain.domain.types import FraudSeverity

logger = structlog.get_logger()

EXTREME_LOWBALL = "extreme_lowball"
EXCESSIVE_NEGOTIATIONS = "excessive_negotiations"
MULTI_ACCOUNT_IP = "multi_account_ip"


class ActivityLookup(Protocol):
    def count_sessions_for_user_since(self, user_id: str, since: datetime) -> int: ...

    def count_distinct_other_users_for_ip_since(
        self, ip_address: str, user_id: str, since: datetime
    ) -> int: ...


def has_high_severity(flags: list[FraudFlag]) -> bool:
    """Return True if any flag must block session creation."""
    return any(f.severity == FraudSeverity.HIGH for f in flags)


class FraudHeuristics:
    """Score a negotiation attempt for suspicious patterns.

    Args:
        activity: Lookup over recorded sessions.
        lowball_ratio: Offers below ``base * lowball_ratio`` are flagged.
        max_sessions_per_day: Sessions per user allowed in 24 hours.
        max_users_per_ip: Other users allowed per IP in one hour.
    """

    def __init__(
        self,
        activity: ActivityLookup | None,
        lowball_ratio: Decimal = Decimal("0.5"),
        max_sessions_per_day: int = 20,
        max_users_per_ip: int = 5,
    ) -> None:
        self._activity = activity
        self._lowball_ratio = lowball_ratio
        self._max_sessions_per_day = max_sessions_per_day
        self._max_users_per_ip = max_users_per_ip

    def offer_flags(
        self, offer_price: Decimal, base_price: Decimal, now: datetime
    ) -> list[FraudFlag]:
        """Flags that depend on the offer alone (checked on every round)."""
        if offer_price < base_price * self._lowball_ratio:
            return [
                FraudFlag(flag=EXTREME_LOWBALL, severity=FraudSeverity.MEDIUM, timestamp=now)
            ]
        return []

    def assess(
        self,
        user_id: str,
        offer_price: Decimal,
        base_price: Decimal,
        ip_address: str | None,
        now: datetime,
    ) -> list[FraudFlag]:
        """Return every flag raised by this attempt (possibly none)."""
        flags = self.offer_flags(offer_price, base_price, now)

        if self._activity is None:
            return flags

        try:
            recent = self._activity.count_sessions_for_user_since(
                user_id, now - timedelta(hours=24)
            )
            if recent > self._max_sessions_per_day:
                flags.append(
                    FraudFlag(
                        flag=EXCESSIVE_NEGOTIATIONS, severity=FraudSeverity.HIGH, timestamp=now
                    )
                )

            if ip_address:
                others = self._activity.count_distinct_other_users_for_ip_since(
                    ip_address, user_id, now - timedelta(hours=1)
                )
                if others > self._max_users_per_ip:
                    flags.append(
                        FraudFlag(flag=MULTI_ACCOUNT_IP, severity=FraudSeverity.HIGH, timestamp=now)
                    )
        except Exception:
            logger.warning("fraud_history_check_skipped", user_id=user_id, exc_info=True)

        if flags:
            logger.info(
                "fraud_flags_raised",
                user_id=user_id,
                flags=[f.flag for f in flags],
                blocked=has_high_severity(flags),
            )
        return flags
