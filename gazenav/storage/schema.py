"""
Calibration data schema and validation.

In-memory shape of calibration points and the fitted profile. Values are
immutable; a recalibration builds a new profile instead of editing one.
"""

from dataclasses import dataclass, asdict, field
from typing import List, Dict, Any, Tuple
import math
import numpy as np
from datetime import datetime

from gazenav.utils.logger import get_logger

logger = get_logger(__name__)


# Profiles fitted from fewer points are not trusted for tracking
MIN_VALID_POINTS = 5


@dataclass(frozen=True)
class CalibrationPoint:
    """
    A known screen target paired with the gaze measured while fixating it.
    """

    # Target position on screen (pixels)
    screen_x: float
    screen_y: float

    # Averaged gaze-direction vector
    gaze_x: float
    gaze_y: float

    # Number of samples averaged for this point
    sample_count: int = 1

    @property
    def screen_position(self) -> Tuple[float, float]:
        return (self.screen_x, self.screen_y)

    @property
    def gaze_direction(self) -> Tuple[float, float]:
        return (self.gaze_x, self.gaze_y)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CalibrationPoint":
        return cls(**data)

    def validate(self) -> bool:
        """
        Validate calibration point data.

        Returns:
            True if valid, raises ValueError if invalid
        """
        if self.screen_x < 0 or self.screen_y < 0:
            raise ValueError("Screen coordinates must be non-negative")

        if not (math.isfinite(self.gaze_x) and math.isfinite(self.gaze_y)):
            raise ValueError("Gaze values must be finite")

        if self.sample_count <= 0:
            raise ValueError("Sample count must be positive")

        return True


@dataclass(frozen=True)
class CalibrationProfile:
    """
    Affine gaze-to-screen mapping fitted from calibration points.

        screen_x = ax * gx + bx * gy + cx
        screen_y = ay * gx + by * gy + cy
    """

    ax: float
    bx: float
    cx: float
    ay: float
    by: float
    cy: float

    points: Tuple[CalibrationPoint, ...] = ()

    screen_width: float = 0.0
    screen_height: float = 0.0

    # Set when the solver fell back to the default mapping on that axis
    degenerate_x: bool = False
    degenerate_y: bool = False

    calibrated_at: str = field(default_factory=lambda: datetime.now().isoformat())

    @property
    def is_valid(self) -> bool:
        return len(self.points) >= MIN_VALID_POINTS

    @property
    def is_degenerate(self) -> bool:
        return self.degenerate_x or self.degenerate_y

    @property
    def coefficients(self) -> Tuple[float, float, float, float, float, float]:
        return (self.ax, self.bx, self.cx, self.ay, self.by, self.cy)

    def map(self, gaze_x: float, gaze_y: float) -> Tuple[float, float]:
        """Apply the affine transform (unclamped)."""
        return (
            self.ax * gaze_x + self.bx * gaze_y + self.cx,
            self.ay * gaze_x + self.by * gaze_y + self.cy,
        )

    def residuals(self) -> np.ndarray:
        """
        Per-point distance between target and mapped position (pixels).

        Returns:
            Array of shape (N,)
        """
        if not self.points:
            return np.zeros(0)

        errors = []
        for p in self.points:
            mx, my = self.map(p.gaze_x, p.gaze_y)
            errors.append(math.hypot(mx - p.screen_x, my - p.screen_y))
        return np.array(errors, dtype=np.float64)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "coefficients": list(self.coefficients),
            "points": [p.to_dict() for p in self.points],
            "screen_width": self.screen_width,
            "screen_height": self.screen_height,
            "degenerate_x": self.degenerate_x,
            "degenerate_y": self.degenerate_y,
            "calibrated_at": self.calibrated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CalibrationProfile":
        ax, bx, cx, ay, by, cy = data["coefficients"]
        return cls(
            ax=ax,
            bx=bx,
            cx=cx,
            ay=ay,
            by=by,
            cy=cy,
            points=tuple(CalibrationPoint.from_dict(p) for p in data.get("points", [])),
            screen_width=data.get("screen_width", 0.0),
            screen_height=data.get("screen_height", 0.0),
            degenerate_x=data.get("degenerate_x", False),
            degenerate_y=data.get("degenerate_y", False),
            calibrated_at=data.get("calibrated_at") or datetime.now().isoformat(),
        )


def gaze_array(points: List[CalibrationPoint]) -> np.ndarray:
    """Gaze vectors as an (N, 2) array."""
    return np.array([[p.gaze_x, p.gaze_y] for p in points], dtype=np.float64).reshape(-1, 2)
