"""Transition map defining all valid (status, event) -> status mappings."""

from enum import StrEnum

from bargain.domain.types import DecisionStatus, SessionStatus


class SessionEvent(StrEnum):
    """Events that can move a negotiation session between statuses.

    The first four mirror decision statuses so a decision can be fed to the
    machine directly; ``expire`` is raised by the deadline check.
    """

    COUNTER = "counter"
    FINAL = "final"
    ACCEPT = "accept"
    REJECT = "reject"
    EXPIRE = "expire"


# All valid (current_status, event_string) -> next_status mappings.
# Any pair not in this dict is an invalid transition.
TRANSITIONS: dict[tuple[SessionStatus, str], SessionStatus] = {
    (SessionStatus.ACTIVE, SessionEvent.COUNTER): SessionStatus.ACTIVE,
    (SessionStatus.ACTIVE, SessionEvent.FINAL): SessionStatus.ACTIVE,
    (SessionStatus.ACTIVE, SessionEvent.ACCEPT): SessionStatus.ACCEPTED,
    (SessionStatus.ACTIVE, SessionEvent.REJECT): SessionStatus.REJECTED,
    (SessionStatus.ACTIVE, SessionEvent.EXPIRE): SessionStatus.EXPIRED,
}

# Statuses that reject all events -- no outgoing transitions allowed.
TERMINAL_STATES: frozenset[SessionStatus] = frozenset(
    {SessionStatus.ACCEPTED, SessionStatus.REJECTED, SessionStatus.EXPIRED}
)


def event_for_decision(status: DecisionStatus) -> SessionEvent:
    """Return the event a decision of *status* triggers."""
    return SessionEvent(status.value)
