"""
Per-frame landmark input produced by the face detector.

A LandmarkFrame is immutable once built. Coordinates are in image pixels.
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np


# Contour convention (16 points per eye). Both eyes run the same image
# direction, so the "inner" anchor is the corner with the smaller x:
#   0      inner corner
#   1-7    upper lid, toward corner 8
#   8      outer corner
#   9-15   lower lid, back toward corner 0
INNER_CORNER = 0
OUTER_CORNER = 8
UPPER_LID = (3, 4, 5)
LOWER_LID = (11, 12, 13)


@dataclass(frozen=True)
class EyeLandmarks:
    """One eye's contour and optional interior landmark."""

    contour: np.ndarray  # Shape: (N, 2)
    landmark: Optional[np.ndarray] = None  # Shape: (2,)

    @classmethod
    def from_points(cls, contour, landmark=None) -> "EyeLandmarks":
        """Build from any sequence of (x, y) pairs."""
        pts = np.asarray(contour, dtype=np.float64).reshape(-1, 2)
        lm = None if landmark is None else np.asarray(landmark, dtype=np.float64).reshape(2)
        return cls(contour=pts, landmark=lm)


@dataclass(frozen=True)
class LandmarkFrame:
    """Face record for a single processed camera frame."""

    left_eye: Optional[EyeLandmarks] = None
    right_eye: Optional[EyeLandmarks] = None

    # Head Euler angles (degrees)
    head_yaw: Optional[float] = None
    head_pitch: Optional[float] = None
    head_roll: Optional[float] = None

    # Eye-openness probabilities (0-1)
    left_eye_open: Optional[float] = None
    right_eye_open: Optional[float] = None

    tracking_id: Optional[int] = None

    @property
    def has_eyes(self) -> bool:
        """True if at least one eye contour is present."""
        return self.left_eye is not None or self.right_eye is not None
