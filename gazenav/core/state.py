"""
Tracker state management.

Defines the lifecycle state machine for the gaze tracker.
"""

from enum import Enum, auto
from typing import Optional, Set
from dataclasses import dataclass


class TrackingState(Enum):
    """
    Tracker states.

    State transitions:
        UNINITIALIZED -> READY
        READY -> TRACKING -> READY
        READY/TRACKING -> CALIBRATING -> TRACKING
        Any -> ERROR -> READY
    """

    UNINITIALIZED = auto()  # Not started
    READY = auto()  # Initialized, not processing frames
    TRACKING = auto()  # Producing cursor positions and dwell events
    CALIBRATING = auto()  # Feeding samples to a calibration session
    ERROR = auto()  # Needs host intervention


_VALID_TRANSITIONS: dict[TrackingState, Set[TrackingState]] = {
    TrackingState.UNINITIALIZED: {
        TrackingState.READY,
        TrackingState.ERROR,
    },
    TrackingState.READY: {
        TrackingState.TRACKING,
        TrackingState.CALIBRATING,
        TrackingState.ERROR,
    },
    TrackingState.TRACKING: {
        TrackingState.READY,
        TrackingState.CALIBRATING,
        TrackingState.ERROR,
    },
    TrackingState.CALIBRATING: {
        TrackingState.TRACKING,
        TrackingState.READY,
        TrackingState.ERROR,
    },
    TrackingState.ERROR: {
        TrackingState.READY,
    },
}


def is_valid_transition(from_state: TrackingState, to_state: TrackingState) -> bool:
    """
    Check if a state transition is valid.

    Same-state transitions are always allowed (no-op).
    """
    if from_state == to_state:
        return True

    return to_state in _VALID_TRANSITIONS.get(from_state, set())


@dataclass
class ErrorInfo:
    """Information about an error that occurred."""

    error_type: str
    message: str
    recoverable: bool = True
    details: Optional[str] = None


class StateMachine:
    """State machine validating tracker state transitions."""

    def __init__(self, initial_state: TrackingState = TrackingState.UNINITIALIZED):
        self._current_state = initial_state
        self._previous_state: Optional[TrackingState] = None
        self._error: Optional[ErrorInfo] = None

    @property
    def current_state(self) -> TrackingState:
        return self._current_state

    @property
    def previous_state(self) -> Optional[TrackingState]:
        return self._previous_state

    @property
    def error(self) -> Optional[ErrorInfo]:
        """Error information if in ERROR state."""
        return self._error

    def transition_to(self, new_state: TrackingState) -> bool:
        """
        Transition to a new state.

        Returns:
            True if transition succeeded, False if invalid
        """
        if not is_valid_transition(self._current_state, new_state):
            return False

        self._previous_state = self._current_state
        self._current_state = new_state

        if self._previous_state == TrackingState.ERROR and new_state != TrackingState.ERROR:
            self._error = None

        return True

    def set_error(self, error_info: ErrorInfo) -> bool:
        """Enter ERROR with the given details."""
        self._error = error_info
        return self.transition_to(TrackingState.ERROR)

    def can_transition_to(self, new_state: TrackingState) -> bool:
        return is_valid_transition(self._current_state, new_state)

    def reset(self):
        """Back to READY, clearing any error."""
        self._previous_state = self._current_state
        self._current_state = TrackingState.READY
        self._error = None
