"""SessionStateMachine class with trigger, history, and valid_events."""

from __future__ import annotations

from bargain.domain.errors import InvalidTransitionError
from bargain.domain.types import SessionStatus
from bargain.state_machine.transitions import TERMINAL_STATES, TRANSITIONS


class SessionStateMachine:
    """Finite state machine governing the negotiation session lifecycle.

    Tracks the current status, validates transitions against the transition
    map, and records the history of every event applied.  Status is
    monotonic: once it leaves ``active`` it never returns.

    Usage::

        sm = SessionStateMachine()
        sm.trigger("counter")   # -> ACTIVE
        sm.trigger("accept")    # -> ACCEPTED (terminal)
    """

    def __init__(self, initial_state: SessionStatus = SessionStatus.ACTIVE) -> None:
        self._state: SessionStatus = initial_state
        self._history: list[tuple[SessionStatus, str, SessionStatus]] = []

    @classmethod
    def from_snapshot(
        cls,
        state: SessionStatus,
        history: list[tuple[SessionStatus, str, SessionStatus]] | None = None,
    ) -> SessionStateMachine:
        """Reconstruct a state machine from a persisted status.

        Args:
            state: The session status to restore.
            history: Optional transition history as ``(from, event, to)``
                tuples in chronological order.

        Returns:
            A ``SessionStateMachine`` positioned at *state*.
        """
        instance = cls(initial_state=state)
        instance._history = list(history or [])
        return instance

    @property
    def state(self) -> SessionStatus:
        """Return the current session status."""
        return self._state

    @property
    def is_terminal(self) -> bool:
        """Return True if the machine is in a terminal status."""
        return self._state in TERMINAL_STATES

    @property
    def history(self) -> list[tuple[SessionStatus, str, SessionStatus]]:
        """Return a copy of the transition history."""
        return list(self._history)

    def trigger(self, event: str) -> SessionStatus:
        """Apply an event to the current status and transition.

        Args:
            event: The event string (e.g. ``"accept"``).

        Returns:
            The new status after the transition.

        Raises:
            InvalidTransitionError: If the transition is not allowed from
                the current status, or if the machine is in a terminal status.
        """
        if self.is_terminal:
            raise InvalidTransitionError(self._state, event)

        key = (self._state, event)
        if key not in TRANSITIONS:
            raise InvalidTransitionError(self._state, event)

        old_state = self._state
        new_state = TRANSITIONS[key]
        self._history.append((old_state, event, new_state))
        self._state = new_state
        return new_state

    def get_valid_events(self) -> list[str]:
        """Return a sorted list of events valid from the current status."""
        if self.is_terminal:
            return []
        return sorted(event for state, event in TRANSITIONS if state == self._state)
