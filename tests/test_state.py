"""
Tests for tracker state management.
"""

from gazenav.core.state import (
    ErrorInfo,
    StateMachine,
    TrackingState,
    is_valid_transition,
)


class TestTransitions:
    """Tests for transition validation."""

    def test_same_state_allowed(self):
        assert is_valid_transition(TrackingState.TRACKING, TrackingState.TRACKING)

    def test_valid_paths(self):
        assert is_valid_transition(TrackingState.UNINITIALIZED, TrackingState.READY)
        assert is_valid_transition(TrackingState.READY, TrackingState.TRACKING)
        assert is_valid_transition(TrackingState.TRACKING, TrackingState.CALIBRATING)
        assert is_valid_transition(TrackingState.CALIBRATING, TrackingState.TRACKING)

    def test_invalid_paths(self):
        assert not is_valid_transition(TrackingState.UNINITIALIZED, TrackingState.TRACKING)
        assert not is_valid_transition(TrackingState.ERROR, TrackingState.TRACKING)


class TestStateMachine:
    """Tests for StateMachine."""

    def test_initial_state(self):
        machine = StateMachine()

        assert machine.current_state == TrackingState.UNINITIALIZED
        assert machine.previous_state is None

    def test_rejected_transition_keeps_state(self):
        machine = StateMachine()

        assert not machine.transition_to(TrackingState.CALIBRATING)
        assert machine.current_state == TrackingState.UNINITIALIZED

    def test_error_and_recovery(self):
        machine = StateMachine(TrackingState.TRACKING)

        assert machine.set_error(ErrorInfo("DetectorError", "model failed"))
        assert machine.current_state == TrackingState.ERROR
        assert machine.error.error_type == "DetectorError"
        assert not machine.can_transition_to(TrackingState.TRACKING)

        assert machine.transition_to(TrackingState.READY)
        assert machine.error is None
        assert machine.previous_state == TrackingState.ERROR

    def test_reset(self):
        machine = StateMachine(TrackingState.ERROR)

        machine.reset()

        assert machine.current_state == TrackingState.READY
