"""
Map gaze-direction vectors to screen pixel coordinates.

Calibrated mode uses an affine transform fitted by least squares over the
calibration points. Uncalibrated mode boosts the signal, applies a small dead
zone and a power curve, then spreads [-1, 1] over the screen with the
horizontal axis mirrored (front camera).
"""

import math
import numpy as np
from typing import Optional, Sequence, Tuple

from gazenav.core.config import GazeConfig
from gazenav.storage.schema import CalibrationPoint, CalibrationProfile
from gazenav.utils.logger import get_logger

logger = get_logger(__name__)


# Normal-equation systems with |det| below this are treated as singular
SINGULAR_DET = 1e-10

# The solver needs at least this many points (three unknowns per axis)
MIN_SOLVER_POINTS = 3


class CalibrationError(ValueError):
    """Calibration cannot be computed from the supplied points."""

    pass


def solve_axis(
    gaze: np.ndarray, targets: np.ndarray, fallback_extent: float
) -> Tuple[Tuple[float, float, float], bool]:
    """
    Fit target = a * gx + b * gy + c by ordinary least squares.

    Builds the 3x3 normal equations over [gx, gy, 1] and solves them with
    Cramer's rule.

    Args:
        gaze: Gaze vectors, shape (N, 2)
        targets: Screen coordinate on one axis, shape (N,)
        fallback_extent: Screen extent used for the default mapping

    Returns:
        ((a, b, c), degenerate). When the system is singular the default
        (extent, 0, extent / 2) is returned with degenerate=True.
    """
    x = gaze[:, 0]
    y = gaze[:, 1]
    t = targets

    a00 = float(np.sum(x * x))
    a01 = float(np.sum(x * y))
    a02 = float(np.sum(x))
    a11 = float(np.sum(y * y))
    a12 = float(np.sum(y))
    a22 = float(len(x))
    b0 = float(np.sum(x * t))
    b1 = float(np.sum(y * t))
    b2 = float(np.sum(t))

    det = (
        a00 * (a11 * a22 - a12 * a12)
        - a01 * (a01 * a22 - a12 * a02)
        + a02 * (a01 * a12 - a11 * a02)
    )

    if abs(det) < SINGULAR_DET:
        return (float(fallback_extent), 0.0, fallback_extent / 2.0), True

    a = (
        b0 * (a11 * a22 - a12 * a12)
        - a01 * (b1 * a22 - a12 * b2)
        + a02 * (b1 * a12 - a11 * b2)
    ) / det
    b = (
        a00 * (b1 * a22 - a12 * b2)
        - b0 * (a01 * a22 - a12 * a02)
        + a02 * (a01 * b2 - b1 * a02)
    ) / det
    c = (
        a00 * (a11 * b2 - b1 * a12)
        - a01 * (a01 * b2 - b1 * a02)
        + b0 * (a01 * a12 - a11 * a02)
    ) / det

    return (a, b, c), False


def dead_zone(value: float, zone: float) -> float:
    """Collapse |value| < zone to 0 and rescale the rest to stay continuous."""
    if abs(value) < zone:
        return 0.0
    return math.copysign((abs(value) - zone) / (1.0 - zone), value)


def power_curve(value: float, exponent: float) -> float:
    """Sign-preserving power; exponent < 1 amplifies small deflections."""
    return math.copysign(abs(value) ** exponent, value)


class ScreenMapper:
    """
    Gaze-to-screen mapping in calibrated or uncalibrated mode.

    Owns the active CalibrationProfile and replaces it wholesale.
    """

    def __init__(self, config: Optional[GazeConfig] = None):
        self._config = config or GazeConfig()
        self._profile: Optional[CalibrationProfile] = None
        self._screen_width = 0.0
        self._screen_height = 0.0

    def set_screen_size(self, width: float, height: float):
        self._screen_width = float(width)
        self._screen_height = float(height)
        logger.info(f"Screen size set: {width}x{height}")

    @property
    def screen_size(self) -> Tuple[float, float]:
        return (self._screen_width, self._screen_height)

    @property
    def has_screen(self) -> bool:
        return self._screen_width > 0 and self._screen_height > 0

    @property
    def is_calibrated(self) -> bool:
        return self._profile is not None and self._profile.is_valid

    @property
    def profile(self) -> Optional[CalibrationProfile]:
        return self._profile

    def calibrate(self, points: Sequence[CalibrationPoint]) -> CalibrationProfile:
        """
        Fit and activate a calibration profile.

        Args:
            points: Calibration points (at least 3)

        Returns:
            The new profile

        Raises:
            CalibrationError: If fewer than 3 points are supplied
        """
        points = list(points)
        if len(points) < MIN_SOLVER_POINTS:
            raise CalibrationError(
                f"Need at least {MIN_SOLVER_POINTS} calibration points, got {len(points)}"
            )

        gaze = np.array([p.gaze_direction for p in points], dtype=np.float64)
        screen = np.array([p.screen_position for p in points], dtype=np.float64)

        (ax, bx, cx), degenerate_x = solve_axis(gaze, screen[:, 0], self._screen_width)
        (ay, by, cy), degenerate_y = solve_axis(gaze, screen[:, 1], self._screen_height)

        if degenerate_x or degenerate_y:
            logger.warning(
                "Calibration system is singular, using default mapping "
                f"(x={degenerate_x}, y={degenerate_y})"
            )

        profile = CalibrationProfile(
            ax=ax,
            bx=bx,
            cx=cx,
            ay=ay,
            by=by,
            cy=cy,
            points=tuple(points),
            screen_width=self._screen_width,
            screen_height=self._screen_height,
            degenerate_x=degenerate_x,
            degenerate_y=degenerate_y,
        )
        self._profile = profile

        logger.info(
            f"Calibration fitted from {len(points)} points: "
            f"x=({ax:.2f}, {bx:.2f}, {cx:.2f}) y=({ay:.2f}, {by:.2f}, {cy:.2f})"
        )
        return profile

    def load_profile(self, profile: CalibrationProfile):
        self._profile = profile

    def clear_calibration(self):
        self._profile = None

    def map_to_screen(self, gaze: Tuple[float, float]) -> Optional[Tuple[float, float]]:
        """
        Map through the calibration profile.

        Returns:
            (x, y) clamped to the screen, or None when uncalibrated or the
            screen size is unknown
        """
        if not self.is_calibrated or not self.has_screen:
            return None

        sx, sy = self._profile.map(gaze[0], gaze[1])
        return (
            float(np.clip(sx, 0.0, self._screen_width)),
            float(np.clip(sy, 0.0, self._screen_height)),
        )

    def map_to_screen_uncalibrated(self, gaze: Tuple[float, float]) -> Tuple[float, float]:
        """
        Map without calibration.

        Returns:
            (x, y) on screen; (0, 0) when the screen size is unknown
        """
        if not self.has_screen:
            return (0.0, 0.0)

        c = self._config
        gx = gaze[0] * c.boost_x
        gy = gaze[1] * c.boost_y

        gx = dead_zone(gx, c.dead_zone)
        gy = dead_zone(gy, c.dead_zone)

        gx = power_curve(gx, c.power_exponent)
        gy = power_curve(gy, c.power_exponent)

        gx = float(np.clip(gx, -1.0, 1.0))
        gy = float(np.clip(gy, -1.0, 1.0))

        half_w = self._screen_width / 2.0
        half_h = self._screen_height / 2.0
        sx = half_w - gx * half_w
        sy = half_h + gy * half_h

        return (
            float(np.clip(sx, 0.0, self._screen_width)),
            float(np.clip(sy, 0.0, self._screen_height)),
        )

    def map(self, gaze: Tuple[float, float]) -> Tuple[float, float]:
        """Calibrated mapping when available, otherwise uncalibrated."""
        mapped = self.map_to_screen(gaze)
        if mapped is None:
            mapped = self.map_to_screen_uncalibrated(gaze)
        return mapped
