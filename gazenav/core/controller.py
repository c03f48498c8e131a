"""
Central controller running the gaze pipeline frame by frame.

landmarks -> gaze estimation -> screen mapping -> dwell detection

The host pushes one LandmarkFrame (or None when no face was found) per
processed camera frame and reads results back through plain accessors.
"""

from typing import Callable, Optional, Tuple
from dataclasses import dataclass

from gazenav.core.config import AppConfig
from gazenav.core.state import StateMachine, TrackingState, ErrorInfo
from gazenav.vision.landmarks import LandmarkFrame
from gazenav.vision.gaze_estimator import GazeEstimator, GazeSample
from gazenav.vision.screen_mapper import ScreenMapper
from gazenav.vision.calibrator import CalibrationSession, CalibrationResult
from gazenav.vision.dwell import DwellDetector, DwellEvent, DwellState, now_ms
from gazenav.storage.schema import CalibrationPoint
from gazenav.utils.timing import FPSCounter
from gazenav.utils.logger import get_logger

logger = get_logger(__name__)


# Diagnostics are logged once every this many frames
DEBUG_LOG_INTERVAL = 45


@dataclass
class FrameResult:
    """Result of processing a single frame."""

    face_detected: bool
    gaze: Optional[GazeSample] = None
    cursor_pos: Optional[Tuple[float, float]] = None
    dwell_event: Optional[DwellEvent] = None
    fps: float = 0.0


class GazeTracker:
    """
    Gaze tracking pipeline for one screen.

    Not reentrant: the frame source must serialize calls to process_frame().
    """

    def __init__(self, config: AppConfig, screen_width: float, screen_height: float):
        """
        Args:
            config: Application configuration
            screen_width: Screen width in pixels
            screen_height: Screen height in pixels
        """
        self._config = config

        self._state_machine = StateMachine()

        self._estimator = GazeEstimator(config.gaze)
        self._mapper = ScreenMapper(config.gaze)
        self._mapper.set_screen_size(screen_width, screen_height)
        self._session = CalibrationSession(config.calibration)
        self._dwell = DwellDetector.from_config(config.dwell)
        self._dwell_listener: Optional[Callable[[DwellEvent], None]] = None

        self._fps_counter = FPSCounter()

        self._current_gaze: Optional[GazeSample] = None
        self._cursor_pos: Optional[Tuple[float, float]] = None
        self._last_timestamp: Optional[float] = None

        # Diagnostics
        self._frame_count = 0
        self._face_count = 0
        self._gaze_count = 0

        self._state_machine.transition_to(TrackingState.READY)
        logger.info(f"GazeTracker initialized for {screen_width}x{screen_height}")

    # Lifecycle

    def start_tracking(self) -> bool:
        """Begin producing cursor positions."""
        if not self._state_machine.transition_to(TrackingState.TRACKING):
            logger.warning(f"Cannot start tracking from state {self.state}")
            return False

        self._fps_counter.reset()
        logger.info("Tracking started")
        return True

    def stop_tracking(self) -> bool:
        """Stop tracking and clear transient state. Baseline is kept."""
        if not self._state_machine.transition_to(TrackingState.READY):
            return False

        self.reset()
        logger.info("Tracking stopped")
        return True

    def report_error(self, error_type: str, message: str, recoverable: bool = True):
        """Record a failure from an external collaborator (camera, detector)."""
        logger.error(f"{error_type}: {message}")
        self._state_machine.set_error(
            ErrorInfo(error_type=error_type, message=message, recoverable=recoverable)
        )
        self.reset()

    def clear_error(self) -> bool:
        return self._state_machine.transition_to(TrackingState.READY)

    # Frame processing

    def process_frame(
        self, frame: Optional[LandmarkFrame], timestamp_ms: Optional[float] = None
    ) -> FrameResult:
        """
        Run the pipeline on one frame.

        Args:
            frame: Landmarks of the detected face, or None if no face
            timestamp_ms: Monotonic frame time (now when omitted)

        Returns:
            FrameResult for this frame
        """
        now = now_ms() if timestamp_ms is None else timestamp_ms
        result = FrameResult(face_detected=False, fps=self._fps_counter.tick())

        state = self.state
        if state not in (TrackingState.TRACKING, TrackingState.CALIBRATING):
            return result

        self._frame_count += 1
        self._last_timestamp = now

        if frame is None:
            # Tracking lost: drop transient state, keep baseline
            self._current_gaze = None
            self._cursor_pos = None
            self._estimator.reset()
            result.dwell_event = self._dwell.reset(now)
            return result

        result.face_detected = True
        self._face_count += 1

        gaze = self._estimator.estimate(frame, now)
        if gaze is None:
            logger.debug("Face detected but no usable eye signal")
            self._current_gaze = None
            self._cursor_pos = None
            return result

        self._gaze_count += 1
        self._current_gaze = gaze
        result.gaze = gaze

        if gaze.confidence >= self._config.gaze.min_confidence:
            self._cursor_pos = self._mapper.map(gaze.gaze_direction)
        else:
            self._cursor_pos = None
        result.cursor_pos = self._cursor_pos

        if state == TrackingState.TRACKING and self._cursor_pos is not None:
            result.dwell_event = self._dwell.update(self._cursor_pos, now)

        if state == TrackingState.CALIBRATING and self._session.is_collecting:
            self._session.add_sample(gaze.gaze_direction)

        if self._frame_count % DEBUG_LOG_INTERVAL == 0:
            self._log_diagnostics(gaze)

        return result

    def _log_diagnostics(self, gaze: GazeSample):
        cursor = self._cursor_pos
        cursor_str = f"({cursor[0]:.0f}, {cursor[1]:.0f})" if cursor else "none"
        logger.debug(
            f"dir=({gaze.x:.4f}, {gaze.y:.4f}) cursor={cursor_str} "
            f"conf={gaze.confidence:.2f} "
            f"head=({gaze.head_yaw:.1f}, {gaze.head_pitch:.1f}) "
            f"frames={self._frame_count} faces={self._face_count} gaze={self._gaze_count}"
        )

    # Resets

    def reset(self):
        """Soft reset: smoothing, head pose, auto-range and fixation state."""
        self._estimator.reset()
        self._dwell.reset(self._last_timestamp)
        self._current_gaze = None
        self._cursor_pos = None

    def full_reset(self):
        """Hard reset: also forgets the baseline."""
        self.reset()
        self._estimator.full_reset()

    # Calibration

    def start_calibration(self) -> bool:
        """
        Open a calibration session.

        Clears the baseline so it is relearned while the user looks at the
        first target, and drops the active profile.
        """
        if not self._state_machine.transition_to(TrackingState.CALIBRATING):
            logger.warning(f"Cannot start calibration from state {self.state}")
            return False

        self.full_reset()
        self._mapper.clear_calibration()
        self._session.begin()
        return True

    def start_sample_collection(self) -> bool:
        return self._session.begin_sample_collection()

    def finish_sample_collection(
        self, screen_position: Tuple[float, float]
    ) -> Optional[CalibrationPoint]:
        return self._session.end_sample_collection(screen_position)

    def finish_calibration(self) -> CalibrationResult:
        """Fit the profile and return to tracking, calibrated or not."""
        result = self._session.finish(self._mapper)
        if self.state == TrackingState.CALIBRATING:
            self._state_machine.transition_to(TrackingState.TRACKING)
        return result

    def cancel_calibration(self):
        self._session.cancel()
        if self.state == TrackingState.CALIBRATING:
            self._state_machine.transition_to(TrackingState.TRACKING)

    # Configuration

    def update_config(self, config: AppConfig):
        """
        Apply new configuration.

        The dwell detector is rebuilt (in-progress dwell is dropped); the
        registered listener carries over.
        """
        self._config = config
        self._estimator.smoothing_factor = config.gaze.smoothing_window / 20.0

        listener = self._dwell_listener
        self._dwell = DwellDetector.from_config(config.dwell)
        self._dwell.set_listener(listener)

        logger.debug(
            f"Config updated: dwell={config.dwell.dwell_time_ms}ms "
            f"radius={config.dwell.fixation_radius:.0f}px"
        )

    def set_dwell_listener(self, listener: Optional[Callable[[DwellEvent], None]]):
        """Register the single receiver of dwell events."""
        self._dwell_listener = listener
        self._dwell.set_listener(listener)

    def set_screen_size(self, width: float, height: float):
        self._mapper.set_screen_size(width, height)

    # Accessors

    @property
    def state(self) -> TrackingState:
        return self._state_machine.current_state

    @property
    def error(self) -> Optional[ErrorInfo]:
        return self._state_machine.error

    @property
    def current_gaze(self) -> Optional[GazeSample]:
        return self._current_gaze

    @property
    def cursor_position(self) -> Optional[Tuple[float, float]]:
        return self._cursor_pos

    @property
    def dwell_state(self) -> DwellState:
        return self._dwell.state

    def dwell_progress(self, timestamp_ms: Optional[float] = None) -> float:
        return self._dwell.progress(timestamp_ms)

    @property
    def is_calibrated(self) -> bool:
        return self._mapper.is_calibrated

    @property
    def mapper(self) -> ScreenMapper:
        return self._mapper

    @property
    def calibration_session(self) -> CalibrationSession:
        return self._session

    @property
    def estimator(self) -> GazeEstimator:
        return self._estimator

    @property
    def config(self) -> AppConfig:
        return self._config

    @property
    def fps(self) -> float:
        return self._fps_counter.fps
