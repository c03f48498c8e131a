"""
Tests for the GazeTracker pipeline controller.
"""

import pytest

from gazenav.core.config import AppConfig, DwellConfig, GazeConfig
from gazenav.core.controller import GazeTracker
from gazenav.core.state import TrackingState
from gazenav.vision.dwell import DwellEventKind, DwellState


@pytest.fixture
def tracker():
    return GazeTracker(AppConfig(), 1920, 1080)


@pytest.fixture
def tracking(tracker):
    tracker.start_tracking()
    return tracker


class TestLifecycle:
    """Tests for tracker state transitions."""

    def test_starts_ready(self, tracker):
        assert tracker.state == TrackingState.READY

    def test_frames_ignored_when_not_tracking(self, tracker, make_frame):
        result = tracker.process_frame(make_frame(), 0.0)

        assert not result.face_detected
        assert result.gaze is None

    def test_start_and_stop(self, tracker):
        assert tracker.start_tracking()
        assert tracker.state == TrackingState.TRACKING

        assert tracker.stop_tracking()
        assert tracker.state == TrackingState.READY

    def test_error_blocks_processing(self, tracking, make_frame):
        tracking.report_error("CameraError", "disconnected")

        assert tracking.state == TrackingState.ERROR
        assert tracking.error.message == "disconnected"
        assert not tracking.process_frame(make_frame(), 0.0).face_detected

        assert tracking.clear_error()
        assert tracking.state == TrackingState.READY
        assert tracking.error is None

    def test_reset_twice(self, tracking, make_frame):
        for i in range(25):
            tracking.process_frame(make_frame(), i * 100.0)

        tracking.reset()
        tracking.reset()

        assert tracking.cursor_position is None
        assert tracking.dwell_state == DwellState.IDLE
        assert tracking.estimator.baseline.is_set


class TestFrameProcessing:
    """Tests for per-frame output."""

    def test_cursor_for_confident_frame(self, tracking, make_frame):
        result = tracking.process_frame(make_frame(), 0.0)

        assert result.face_detected
        assert result.gaze is not None
        # Baseline warm-up: gaze (0, 0) maps to screen centre
        assert result.cursor_pos == (960.0, 540.0)
        assert tracking.cursor_position == (960.0, 540.0)

    def test_low_confidence_hides_cursor(self, tracking, make_frame):
        frame = make_frame(right=False, tracking_id=None, left_open=0.0, right_open=0.0)

        result = tracking.process_frame(frame, 0.0)

        assert result.gaze is not None
        assert result.gaze.confidence < 0.3
        assert result.cursor_pos is None

    def test_tracking_lost(self, tracking, make_frame):
        tracking.process_frame(make_frame(), 0.0)

        result = tracking.process_frame(None, 100.0)

        assert not result.face_detected
        assert result.cursor_pos is None
        assert tracking.cursor_position is None
        assert tracking.current_gaze is None

    def test_face_without_usable_eyes(self, tracking, make_frame):
        result = tracking.process_frame(make_frame(left=False, right=False), 0.0)

        assert result.face_detected
        assert result.gaze is None

    def test_face_without_usable_eyes_clears_cursor(self, tracking, make_frame):
        tracking.process_frame(make_frame(), 0.0)
        assert tracking.cursor_position is not None

        result = tracking.process_frame(make_frame(left=False, right=False), 100.0)

        assert result.cursor_pos is None
        assert tracking.cursor_position is None
        assert tracking.current_gaze is None


class TestDwellIntegration:
    """Tests for dwell events flowing out of the tracker."""

    def test_steady_gaze_triggers_once(self, tracking, make_frame):
        received = []
        tracking.set_dwell_listener(received.append)

        for i in range(25):
            tracking.process_frame(make_frame(), i * 100.0)

        assert [e.kind for e in received] == [
            DwellEventKind.STARTED,
            DwellEventKind.TRIGGERED,
        ]
        assert tracking.dwell_state == DwellState.COOLDOWN

    def test_tracking_lost_cancels_dwell(self, tracking, make_frame):
        for i in range(5):
            tracking.process_frame(make_frame(), i * 100.0)
        assert tracking.dwell_state == DwellState.DWELLING
        assert tracking.dwell_progress(500.0) > 0.0

        result = tracking.process_frame(None, 600.0)

        assert result.dwell_event.kind == DwellEventKind.CANCELLED
        assert tracking.dwell_state == DwellState.IDLE

    def test_update_config_keeps_listener(self, tracking, make_frame):
        received = []
        tracking.set_dwell_listener(received.append)

        config = AppConfig(
            gaze=GazeConfig(smoothing_window=10),
            dwell=DwellConfig(dwell_time_ms=300),
        )
        tracking.update_config(config)

        for i in range(5):
            tracking.process_frame(make_frame(), i * 100.0)

        assert tracking.estimator.smoothing_factor == pytest.approx(0.5)
        assert DwellEventKind.TRIGGERED in [e.kind for e in received]


class TestCalibrationFlow:
    """Tests for calibration through the tracker."""

    TARGETS = [(192.0, 108.0), (1728.0, 108.0), (960.0, 540.0), (192.0, 972.0), (1728.0, 972.0)]
    GAZES = [(-0.4, -0.3), (0.4, -0.3), (0.0, 0.0), (-0.4, 0.3), (0.4, 0.3)]

    def test_start_calibration_clears_state(self, tracking, make_frame):
        for i in range(25):
            tracking.process_frame(make_frame(), i * 100.0)

        assert tracking.start_calibration()

        assert tracking.state == TrackingState.CALIBRATING
        assert not tracking.estimator.baseline.is_set
        assert not tracking.is_calibrated

    def test_frames_feed_session(self, tracking, make_frame):
        tracking.start_calibration()
        tracking.start_sample_collection()

        for i in range(6):
            tracking.process_frame(make_frame(), i * 100.0)

        assert tracking.calibration_session.sample_count == 6
        assert tracking.dwell_state == DwellState.IDLE

    def test_successful_calibration(self, tracking):
        tracking.start_calibration()
        session = tracking.calibration_session

        for target, gaze in zip(self.TARGETS, self.GAZES):
            tracking.start_sample_collection()
            for _ in range(10):
                session.add_sample(gaze)
            tracking.finish_sample_collection(target)

        result = tracking.finish_calibration()

        assert result.success
        assert tracking.is_calibrated
        assert tracking.state == TrackingState.TRACKING

    def test_flat_gaze_fails(self, tracking, make_frame):
        """Identical frames for every target leave the tracker uncalibrated."""
        tracking.start_calibration()

        t = 0.0
        for target in self.TARGETS:
            tracking.start_sample_collection()
            for _ in range(8):
                tracking.process_frame(make_frame(), t)
                t += 100.0
            tracking.finish_sample_collection(target)

        result = tracking.finish_calibration()

        assert not result.success
        assert not tracking.is_calibrated
        assert tracking.state == TrackingState.TRACKING

    def test_cancel_calibration(self, tracking):
        tracking.start_calibration()
        tracking.cancel_calibration()

        assert tracking.state == TrackingState.TRACKING
        assert not tracking.calibration_session.is_active

    def test_finish_without_session_keeps_state(self, tracker):
        result = tracker.finish_calibration()

        assert not result.success
        assert tracker.state == TrackingState.READY

    def test_cancel_without_session_keeps_state(self, tracker):
        tracker.cancel_calibration()

        assert tracker.state == TrackingState.READY
