"""Session status state machine with transition validation."""

from bargain.state_machine.machine import SessionStateMachine
from bargain.state_machine.transitions import (
    TERMINAL_STATES,
    TRANSITIONS,
    SessionEvent,
    event_for_decision,
)

__all__ = [
    "SessionEvent",
    "SessionStateMachine",
    "TERMINAL_STATES",
    "TRANSITIONS",
    "event_for_decision",
]
