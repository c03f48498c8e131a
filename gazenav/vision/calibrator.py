"""
Calibration session for mapping gaze to screen coordinates.

The host shows a target, calls begin_sample_collection(), feeds gaze samples
while the user fixates it, then end_sample_collection(target_position). After
all targets, finish() fits the ScreenMapper profile.
"""

import numpy as np
from typing import List, Optional, Sequence, Tuple
from dataclasses import dataclass
from enum import Enum, auto

from gazenav.core.config import CalibrationConfig
from gazenav.storage.schema import CalibrationPoint, CalibrationProfile, gaze_array
from gazenav.vision.screen_mapper import ScreenMapper, CalibrationError
from gazenav.utils.logger import get_logger

logger = get_logger(__name__)


class CalibrationState(Enum):
    """Calibration session states."""

    IDLE = auto()  # No session
    READY = auto()  # Session open, waiting for the next target
    COLLECTING = auto()  # Collecting samples for the current target
    COMPLETED = auto()  # Profile fitted
    FAILED = auto()  # Session ended without a usable profile


@dataclass(frozen=True)
class CalibrationResult:
    """Outcome of finishing a calibration session."""

    success: bool
    profile: Optional[CalibrationProfile] = None
    reason: Optional[str] = None
    gaze_range: Tuple[float, float] = (0.0, 0.0)


def trimmed_average(
    samples: Sequence[Tuple[float, float]],
    trim_percent: float = 0.2,
    min_samples: int = 6,
) -> Optional[Tuple[float, float]]:
    """
    Robust mean of gaze samples.

    With at least `min_samples` samples, sorts by horizontal value and drops
    round(n * trim_percent) samples from each end before averaging both axes.
    Blinks and saccades show up as horizontal outliers.

    Returns:
        (avg_x, avg_y), or None for no samples
    """
    if len(samples) == 0:
        return None

    data = np.asarray(samples, dtype=np.float64).reshape(-1, 2)

    if len(data) >= min_samples:
        order = np.argsort(data[:, 0], kind="stable")
        trim = int(round(len(data) * trim_percent))
        if trim > 0:
            data = data[order][trim: len(data) - trim]

    avg = data.mean(axis=0)
    return (float(avg[0]), float(avg[1]))


class CalibrationSession:
    """
    Guided calibration procedure.

    Process:
    1. begin() opens the session
    2. For each target: begin_sample_collection(), add_sample() per frame,
       end_sample_collection(target_position)
    3. finish(mapper) fits the profile, or reports why it could not
    """

    def __init__(self, config: Optional[CalibrationConfig] = None):
        self._config = config or CalibrationConfig()

        self._state = CalibrationState.IDLE
        self._points: List[CalibrationPoint] = []
        self._samples: List[Tuple[float, float]] = []
        self._result: Optional[CalibrationResult] = None

    def begin(self):
        """Start a new session, discarding any previous points."""
        self._points = []
        self._samples = []
        self._result = None
        self._state = CalibrationState.READY
        logger.info("Calibration session started")

    def begin_sample_collection(self) -> bool:
        """
        Start collecting samples for the current target.

        Returns:
            False if no session is open
        """
        if self._state not in (CalibrationState.READY, CalibrationState.COLLECTING):
            return False

        self._samples = []
        self._state = CalibrationState.COLLECTING
        return True

    def add_sample(self, gaze: Tuple[float, float]) -> bool:
        """
        Add a gaze sample for the current target.

        Returns:
            True if the sample was recorded
        """
        if self._state != CalibrationState.COLLECTING:
            return False

        self._samples.append((float(gaze[0]), float(gaze[1])))
        return True

    def end_sample_collection(
        self, screen_position: Tuple[float, float]
    ) -> Optional[CalibrationPoint]:
        """
        Close collection for the current target.

        Args:
            screen_position: Target position on screen (pixels)

        Returns:
            The recorded point, or None if no usable average was collected
        """
        if self._state != CalibrationState.COLLECTING:
            return None

        self._state = CalibrationState.READY

        avg = trimmed_average(
            self._samples,
            self._config.outlier_trim_percent,
            self._config.min_samples_for_trim,
        )
        if avg is None:
            logger.warning(f"No samples collected for target {len(self._points)}")
            return None

        point = CalibrationPoint(
            screen_x=float(screen_position[0]),
            screen_y=float(screen_position[1]),
            gaze_x=avg[0],
            gaze_y=avg[1],
            sample_count=len(self._samples),
        )
        self._samples = []
        try:
            point.validate()
        except ValueError as e:
            logger.warning(f"Rejected calibration point {len(self._points)}: {e}")
            return None

        self._points.append(point)

        logger.info(
            f"Calibration point #{len(self._points) - 1}: "
            f"screen=({point.screen_x:.0f}, {point.screen_y:.0f}) "
            f"gaze=({point.gaze_x:.4f}, {point.gaze_y:.4f}) "
            f"samples={point.sample_count}"
        )
        return point

    def finish(self, mapper: ScreenMapper) -> CalibrationResult:
        """
        Fit the calibration profile into `mapper`.

        The mapper is left uncalibrated when the session fails.
        """
        if not self.is_active:
            # Nothing to fit; an existing profile stays in place
            return CalibrationResult(success=False, reason="No calibration session in progress")

        if len(self._points) < self._config.min_points:
            return self._fail(
                mapper,
                f"Need at least {self._config.min_points} calibration points, "
                f"got {len(self._points)}",
            )

        gaze = gaze_array(self._points)
        span = gaze.max(axis=0) - gaze.min(axis=0)
        gaze_range = (float(span[0]), float(span[1]))

        logger.info(
            f"Calibration finish: {len(self._points)} points, "
            f"gaze range x={gaze_range[0]:.4f} y={gaze_range[1]:.4f}"
        )

        if gaze_range[0] < self._config.min_gaze_range and gaze_range[1] < self._config.min_gaze_range:
            return self._fail(
                mapper, "Gaze range too small, staying uncalibrated", gaze_range
            )

        try:
            profile = mapper.calibrate(self._points)
        except CalibrationError as e:
            return self._fail(mapper, str(e), gaze_range)

        self._state = CalibrationState.COMPLETED
        self._result = CalibrationResult(success=True, profile=profile, gaze_range=gaze_range)

        residuals = profile.residuals()
        logger.info(
            f"Calibration completed: mean error {residuals.mean():.1f}px, "
            f"max {residuals.max():.1f}px"
        )
        return self._result

    def _fail(
        self,
        mapper: ScreenMapper,
        reason: str,
        gaze_range: Tuple[float, float] = (0.0, 0.0),
    ) -> CalibrationResult:
        logger.warning(f"Calibration failed: {reason}")
        mapper.clear_calibration()
        self._state = CalibrationState.FAILED
        self._result = CalibrationResult(success=False, reason=reason, gaze_range=gaze_range)
        return self._result

    def cancel(self):
        """Abandon the session."""
        self._samples = []
        self._points = []
        self._state = CalibrationState.IDLE
        logger.info("Calibration cancelled")

    def target_positions(self, screen_width: float, screen_height: float) -> List[Tuple[float, float]]:
        """Configured targets in screen pixels."""
        return [
            (nx * screen_width, ny * screen_height)
            for nx, ny in self._config.target_positions
        ]

    @property
    def state(self) -> CalibrationState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state in (CalibrationState.READY, CalibrationState.COLLECTING)

    @property
    def is_collecting(self) -> bool:
        return self._state == CalibrationState.COLLECTING

    @property
    def points(self) -> Tuple[CalibrationPoint, ...]:
        return tuple(self._points)

    @property
    def sample_count(self) -> int:
        return len(self._samples)

    @property
    def result(self) -> Optional[CalibrationResult]:
        return self._result

    @property
    def progress(self) -> Tuple[int, int]:
        """(points captured, total targets)"""
        return (len(self._points), len(self._config.target_positions))
