"""
Shared fixtures for GazeNav tests.
"""

import numpy as np
import pytest

from gazenav.vision.landmarks import EyeLandmarks, LandmarkFrame


# 16-point eye contour, 40 x 18 px, centred on (100, 50)
EYE_CONTOUR = [
    (80, 50),  # inner corner
    (84, 46), (88, 44), (94, 42), (100, 41), (106, 42), (112, 44), (116, 46),
    (120, 50),  # outer corner
    (116, 54), (112, 56), (106, 58), (100, 59), (94, 58), (88, 56), (84, 54),
]


@pytest.fixture
def eye_contour():
    return np.array(EYE_CONTOUR, dtype=np.float64)


@pytest.fixture
def make_frame():
    """Factory for LandmarkFrames built around EYE_CONTOUR."""

    def _make(
        landmark=(100.0, 50.0),
        left=True,
        right=True,
        tracking_id=1,
        left_open=None,
        right_open=None,
        yaw=None,
        pitch=None,
    ):
        eye = EyeLandmarks.from_points(EYE_CONTOUR, landmark)
        return LandmarkFrame(
            left_eye=eye if left else None,
            right_eye=eye if right else None,
            head_yaw=yaw,
            head_pitch=pitch,
            left_eye_open=left_open,
            right_eye_open=right_open,
            tracking_id=tracking_id,
        )

    return _make
