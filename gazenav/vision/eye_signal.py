"""
Per-eye gaze signal extraction.

The landmark point is measured as a ratio within the eye opening, using the
contour corners and lid midpoints as anchors. The horizontal ratio is fused
with a contour-shape asymmetry term, and the result is encoded back into a
virtual iris position so every consumer reads it through the same
(iris - center) / half-extent formula.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from gazenav.vision.landmarks import (
    INNER_CORNER,
    OUTER_CORNER,
    UPPER_LID,
    LOWER_LID,
)
from gazenav.utils.logger import get_logger

logger = get_logger(__name__)


# Ratios are only trusted above these eye dimensions (pixels)
MIN_RATIO_WIDTH = 3.0
MIN_RATIO_HEIGHT = 2.0


@dataclass(frozen=True)
class EyeBounds:
    """Axis-aligned eye bounding box (pixels)."""

    left: float
    top: float
    right: float
    bottom: float

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top


@dataclass(frozen=True)
class EyeSignal:
    """
    Gaze signal derived from one eye.

    Coordinates of gaze_x / gaze_y:
    - 0 when the virtual iris sits on the eye center
    - roughly +/-0.5 at the signal extremes
    """

    eye_center: Tuple[float, float]
    iris_center: Tuple[float, float]  # Virtual iris encoding the fused signal
    bounds: EyeBounds
    iris_radius: float = 0.0

    @property
    def gaze_x(self) -> float:
        if self.bounds.width < 1:
            return 0.0
        return (self.iris_center[0] - self.eye_center[0]) / (self.bounds.width / 2.0)

    @property
    def gaze_y(self) -> float:
        if self.bounds.height < 1:
            return 0.0
        return (self.iris_center[1] - self.eye_center[1]) / (self.bounds.height / 2.0)

    @property
    def gaze_offset(self) -> Tuple[float, float]:
        return (self.gaze_x, self.gaze_y)


class EyeSignalExtractor:
    """
    Convert an eye contour plus landmark point into an EyeSignal.

    Stateless; one instance can serve both eyes.
    """

    def __init__(
        self,
        min_points: int = 9,
        min_width: float = 5.0,
        ratio_weight: float = 0.7,
        asymmetry_weight: float = 0.3,
    ):
        """
        Args:
            min_points: Minimum contour length accepted
            min_width: Minimum bounding-box width (pixels)
            ratio_weight: Weight of the corner ratio in the horizontal signal
            asymmetry_weight: Weight of the contour asymmetry term
        """
        self._min_points = min_points
        self._min_width = min_width
        self._ratio_weight = ratio_weight
        self._asymmetry_weight = asymmetry_weight

    def extract(self, contour, landmark=None) -> Optional[EyeSignal]:
        """
        Extract the gaze signal of one eye.

        Args:
            contour: Ordered contour points, shape (N, 2)
            landmark: Interior eye landmark (x, y), or None

        Returns:
            EyeSignal, or None if the contour is too short or the eye too narrow
        """
        if contour is None:
            return None

        pts = np.asarray(contour, dtype=np.float64).reshape(-1, 2)
        if len(pts) < self._min_points:
            return None

        x0, y0 = pts.min(axis=0)
        x1, y1 = pts.max(axis=0)
        bounds = EyeBounds(float(x0), float(y0), float(x1), float(y1))
        if bounds.width < self._min_width:
            return None

        center = pts.mean(axis=0)

        last = len(pts) - 1
        inner = pts[INNER_CORNER]
        outer = pts[OUTER_CORNER]
        top_lid = pts[list(UPPER_LID)].mean(axis=0)
        bottom_lid = pts[[min(i, last) for i in LOWER_LID]].mean(axis=0)

        if landmark is None:
            iris = center
        else:
            iris = np.asarray(landmark, dtype=np.float64).reshape(2)

        eye_width = outer[0] - inner[0]
        eye_height = bottom_lid[1] - top_lid[1]

        ratio_x = 0.0
        ratio_y = 0.0
        if abs(eye_width) > MIN_RATIO_WIDTH:
            ratio_x = (iris[0] - inner[0]) / eye_width - 0.5
        if abs(eye_height) > MIN_RATIO_HEIGHT:
            ratio_y = (iris[1] - top_lid[1]) / eye_height - 0.5

        asymmetry = self._asymmetry(pts, center[0])
        fused_x = ratio_x * self._ratio_weight + asymmetry * self._asymmetry_weight

        virtual_iris = (
            float(center[0] + fused_x * (bounds.width / 2.0)),
            float(center[1] + ratio_y * (bounds.height / 2.0)),
        )

        return EyeSignal(
            eye_center=(float(center[0]), float(center[1])),
            iris_center=virtual_iris,
            bounds=bounds,
            iris_radius=bounds.width * 0.25,
        )

    @staticmethod
    def _asymmetry(pts: np.ndarray, center_x: float) -> float:
        """
        Contour shape asymmetry in [-1, 1].

        Looking toward one side compresses that side of the opening, so the
        mean horizontal spread of the two halves diverges.
        """
        xs = pts[:, 0]
        left = center_x - xs[xs < center_x]
        right = xs[xs >= center_x] - center_x

        left_dist = float(left.mean()) if len(left) else 0.0
        right_dist = float(right.mean()) if len(right) else 0.0

        total = left_dist + right_dist
        if total <= 1:
            return 0.0
        return (right_dist - left_dist) / total


def combine_eyes(
    left: Optional[EyeSignal], right: Optional[EyeSignal]
) -> Optional[Tuple[float, float]]:
    """
    Merge both eyes into one raw gaze vector.

    Each eye is weighted by its bounding-box width, a proxy for how well it
    was detected. A single eye is used as-is.

    Returns:
        (x, y), or None when neither eye is present
    """
    if left is not None and right is not None:
        lw = left.bounds.width
        rw = right.bounds.width
        total = lw + rw
        if total < 1:
            return (0.0, 0.0)
        return (
            (left.gaze_x * lw + right.gaze_x * rw) / total,
            (left.gaze_y * lw + right.gaze_y * rw) / total,
        )

    if left is not None:
        return left.gaze_offset
    if right is not None:
        return right.gaze_offset
    return None
