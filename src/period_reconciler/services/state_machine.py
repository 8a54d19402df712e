"""Payroll period state machine with transition validation."""

from __future__ import annotations

from period_reconciler.calculators.types import PeriodState, RecordState


class InvalidTransitionError(Exception):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_state: str, to_state: str, reason: str | None = None):
        self.from_state = from_state
        self.to_state = to_state
        self.reason = reason
        msg = f"Invalid transition from '{from_state}' to '{to_state}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class PeriodStateMachine:
    """State machine for payroll period transitions.

    Allowed transitions:
    - draft → in_progress
    - in_progress → closed
    - closed → approved
    - closed → reopened
    - reopened → closed
    - draft / in_progress → canceled

    Corrective transitions (applied only by reconciliation):
    - draft → closed, when every payroll record already moved past draft
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        PeriodState.DRAFT.value: [PeriodState.IN_PROGRESS.value, PeriodState.CANCELED.value],
        PeriodState.IN_PROGRESS.value: [PeriodState.CLOSED.value, PeriodState.CANCELED.value],
        PeriodState.CLOSED.value: [PeriodState.APPROVED.value, PeriodState.REOPENED.value],
        PeriodState.REOPENED.value: [PeriodState.CLOSED.value],
        PeriodState.APPROVED.value: [],  # Terminal state
        PeriodState.CANCELED.value: [],  # Terminal state
    }

    CORRECTIVE_TRANSITIONS: dict[str, list[str]] = {
        PeriodState.DRAFT.value: [PeriodState.CLOSED.value],
    }

    # Periods payroll work can continue on
    ACTIVE_STATES = frozenset({PeriodState.DRAFT.value, PeriodState.IN_PROGRESS.value})

    # "paid" is a legacy period state still present in older ledgers
    CLOSED_STATES = frozenset(
        {PeriodState.CLOSED.value, PeriodState.APPROVED.value, RecordState.PAID.value}
    )

    KNOWN_STATES = frozenset(state.value for state in PeriodState)

    # Lower wins when choosing which of several duplicates to keep
    DUPLICATE_PRIORITY: dict[str, int] = {
        PeriodState.CLOSED.value: 1,
        PeriodState.APPROVED.value: 1,
        PeriodState.IN_PROGRESS.value: 2,
        PeriodState.REOPENED.value: 2,
        PeriodState.DRAFT.value: 3,
        PeriodState.CANCELED.value: 4,
    }
    UNKNOWN_PRIORITY = 5

    @classmethod
    def can_transition(cls, from_state: str, to_state: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_state, [])
        return to_state in allowed

    @classmethod
    def validate_transition(cls, from_state: str, to_state: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_state, to_state):
            allowed = cls.get_next_states(from_state)
            reason = f"allowed: {', '.join(allowed)}" if allowed else "no transitions allowed"
            raise InvalidTransitionError(from_state, to_state, reason)

    @classmethod
    def can_correct(cls, from_state: str, to_state: str) -> bool:
        """Check if reconciliation may force this transition."""
        return to_state in cls.CORRECTIVE_TRANSITIONS.get(from_state, [])

    @classmethod
    def is_active(cls, state: str) -> bool:
        return state in cls.ACTIVE_STATES

    @classmethod
    def is_closed(cls, state: str) -> bool:
        return state in cls.CLOSED_STATES

    @classmethod
    def is_known(cls, state: str) -> bool:
        return state in cls.KNOWN_STATES

    @classmethod
    def is_reopen(cls, from_state: str, to_state: str) -> bool:
        """Check if this transition is a reopen (closed → reopened)."""
        return from_state == PeriodState.CLOSED.value and to_state == PeriodState.REOPENED.value

    @classmethod
    def duplicate_priority(cls, state: str) -> int:
        return cls.DUPLICATE_PRIORITY.get(state, cls.UNKNOWN_PRIORITY)

    @classmethod
    def get_next_states(cls, current_state: str) -> list[str]:
        """Get list of valid next states from current state."""
        return cls.VALID_TRANSITIONS.get(current_state, [])
