"""
Finite state machine for a single booking attempt.

An attempt starts once a message (or an assistant command block) has been
attributed to a service kind and ends in exactly one outcome state:

    CLASSIFIED -> SLOTS_EXTRACTED -> AWAITING_INPUT
                                  -> EXECUTING -> CONFIRMED
                                               -> DEGRADED_RECORDED
                                               -> DEGRADED_SIMULATED
                                               -> REJECTED

Usage:
    sm = BookingStateMachine()
    sm.transition(BookingTrigger.SLOTS_PARSED)
    assert sm.current_state == BookingState.SLOTS_EXTRACTED
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from booking_pipeline.schemas.booking_schema import BookingStatus

logger = logging.getLogger(__name__)


class BookingState(str, Enum):
    """All possible states of a booking attempt."""
    CLASSIFIED = "classified"
    SLOTS_EXTRACTED = "slots_extracted"
    AWAITING_INPUT = "awaiting_input"
    EXECUTING = "executing"
    CONFIRMED = "confirmed"
    DEGRADED_RECORDED = "degraded_recorded"
    DEGRADED_SIMULATED = "degraded_simulated"
    REJECTED = "rejected"


class BookingTrigger(str, Enum):
    """Events that cause state transitions."""
    SLOTS_PARSED = "slots_parsed"
    SLOTS_INCOMPLETE = "slots_incomplete"
    SLOTS_COMPLETE = "slots_complete"
    PRIMARY_SUCCEEDED = "primary_succeeded"
    FALLBACK_RECORDED = "fallback_recorded"
    FALLBACK_SIMULATED = "fallback_simulated"
    VALIDATION_FAILED = "validation_failed"


TERMINAL_STATES = frozenset({
    BookingState.AWAITING_INPUT,
    BookingState.CONFIRMED,
    BookingState.DEGRADED_RECORDED,
    BookingState.DEGRADED_SIMULATED,
    BookingState.REJECTED,
})

_STATUS_TRIGGERS = {
    BookingStatus.CONFIRMED: BookingTrigger.PRIMARY_SUCCEEDED,
    BookingStatus.PENDING: BookingTrigger.FALLBACK_RECORDED,
    BookingStatus.SIMULATED: BookingTrigger.FALLBACK_SIMULATED,
    BookingStatus.REJECTED: BookingTrigger.VALIDATION_FAILED,
}


def trigger_for_status(status: BookingStatus) -> BookingTrigger:
    """Map an executor outcome to the trigger that records it."""
    return _STATUS_TRIGGERS[status]


@dataclass
class Transition:
    """A single valid state transition."""
    from_state: BookingState
    to_state: BookingState
    trigger: BookingTrigger


@dataclass
class StateEntry:
    """Recorded history entry for a state visit."""
    state: BookingState
    entered_at: datetime
    trigger: Optional[BookingTrigger] = None


class InvalidTransitionError(Exception):
    """Raised when a transition is not valid from the current state."""


class BookingStateMachine:
    """
    Deterministic state machine for one booking attempt.

    Every transition must be explicitly defined. Anything else is rejected
    with an error naming the triggers that are allowed.
    """

    TRANSITIONS: list[Transition] = [
        Transition(BookingState.CLASSIFIED, BookingState.SLOTS_EXTRACTED,
                   BookingTrigger.SLOTS_PARSED),

        Transition(BookingState.SLOTS_EXTRACTED, BookingState.AWAITING_INPUT,
                   BookingTrigger.SLOTS_INCOMPLETE),
        Transition(BookingState.SLOTS_EXTRACTED, BookingState.EXECUTING,
                   BookingTrigger.SLOTS_COMPLETE),

        Transition(BookingState.EXECUTING, BookingState.CONFIRMED,
                   BookingTrigger.PRIMARY_SUCCEEDED),
        Transition(BookingState.EXECUTING, BookingState.DEGRADED_RECORDED,
                   BookingTrigger.FALLBACK_RECORDED),
        Transition(BookingState.EXECUTING, BookingState.DEGRADED_SIMULATED,
                   BookingTrigger.FALLBACK_SIMULATED),
        Transition(BookingState.EXECUTING, BookingState.REJECTED,
                   BookingTrigger.VALIDATION_FAILED),
    ]

    def __init__(self) -> None:
        self._current_state = BookingState.CLASSIFIED
        self._history: list[StateEntry] = [
            StateEntry(state=BookingState.CLASSIFIED, entered_at=datetime.now(timezone.utc))
        ]

    @property
    def current_state(self) -> BookingState:
        return self._current_state

    def transition(self, trigger: BookingTrigger) -> BookingState:
        """
        Execute a state transition.

        Raises:
            InvalidTransitionError: If no valid transition exists.
        """
        for t in self.TRANSITIONS:
            if t.from_state == self._current_state and t.trigger == trigger:
                old_state = self._current_state
                self._current_state = t.to_state
                self._history.append(StateEntry(
                    state=self._current_state,
                    entered_at=datetime.now(timezone.utc),
                    trigger=trigger,
                ))
                logger.debug(
                    "Booking transition: %s -> %s (trigger: %s)",
                    old_state.value, self._current_state.value, trigger.value,
                )
                return self._current_state

        valid = [t.value for t in self.get_valid_triggers()]
        raise InvalidTransitionError(
            f"No valid transition from '{self._current_state.value}' "
            f"with trigger '{trigger.value}'. Valid triggers: {valid}"
        )

    def record_outcome(self, status: BookingStatus) -> BookingState:
        """Move from EXECUTING to the state matching an executor outcome."""
        return self.transition(trigger_for_status(status))

    def get_valid_triggers(self) -> list[BookingTrigger]:
        return [t.trigger for t in self.TRANSITIONS if t.from_state == self._current_state]

    def get_history(self) -> list[StateEntry]:
        return list(self._history)

    def get_state_trace(self) -> list[str]:
        """Return ordered list of state names visited."""
        return [entry.state.value for entry in self._history]

    def is_terminal(self) -> bool:
        return self._current_state in TERMINAL_STATES
