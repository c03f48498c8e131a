"""
Tests for converting Face Mesh points into LandmarkFrames.

These do not need MediaPipe; the mesh is synthesized.
"""

import math

import cv2
import numpy as np
import pytest

from gazenav.vision.eye_signal import EyeSignalExtractor, combine_eyes
from gazenav.vision.face_tracker import (
    FACE_3D_MODEL,
    LEFT_EYE_CONTOUR,
    LEFT_IRIS_CENTER,
    MESH_POINTS,
    POSE_LANDMARK_IDS,
    RIGHT_EYE_CONTOUR,
    RIGHT_IRIS_CENTER,
    build_landmark_frame,
    estimate_head_pose,
    eye_aspect_ratio,
    eye_openness,
)


FRAME_SIZE = (640, 480)


def synthetic_mesh(yaw_deg=0.0):
    """478 points with the pose landmarks projected from the 3D face model."""
    width, height = FRAME_SIZE
    camera_matrix = np.array(
        [[width, 0, width / 2.0], [0, width, height / 2.0], [0, 0, 1]],
        dtype=np.float64,
    )
    rvec = np.array([0.0, math.radians(yaw_deg), 0.0])
    tvec = np.array([0.0, 0.0, 1000.0])

    projected, _ = cv2.projectPoints(
        FACE_3D_MODEL, rvec, tvec, camera_matrix, np.zeros((4, 1))
    )

    rng = np.random.default_rng(0)
    points = rng.uniform([200, 150], [440, 330], size=(MESH_POINTS, 2))
    points[POSE_LANDMARK_IDS] = projected.reshape(-1, 2)
    return points


# Face Mesh eye landmarks listed by increasing image x in an unmirrored frame:
# (first corner, upper lid, second corner, lower lid)
IMAGE_LEFT_EYE = (33, (246, 161, 160, 159, 158, 157, 173), 133, (7, 163, 144, 145, 153, 154, 155))
IMAGE_RIGHT_EYE = (362, (398, 384, 385, 386, 387, 388, 466), 263, (382, 381, 380, 374, 373, 390, 249))

EYE_WIDTH = 40.0


def place_eye(points, layout, x0, y, iris_id, iris_shift, half_height=8.0):
    """Lay out one almond-shaped eye starting at image x0, iris shifted in x."""
    first, upper, second, lower = layout
    points[first] = (x0, y)
    points[second] = (x0 + EYE_WIDTH, y)
    for i, (top, bottom) in enumerate(zip(upper, lower), start=1):
        t = i / 8.0
        dy = half_height * math.sin(math.pi * t)
        points[top] = (x0 + EYE_WIDTH * t, y - dy)
        points[bottom] = (x0 + EYE_WIDTH * t, y + dy)
    points[iris_id] = (x0 + EYE_WIDTH / 2.0 + iris_shift, y)


def mesh_with_eyes(iris_shift=0.0):
    """Synthetic mesh with both eyes at anatomical positions around the pose corners."""
    points = synthetic_mesh()
    # 33 and 263 are pose landmarks too, so each eye is anchored on them
    x33, y33 = points[33]
    x263, y263 = points[263]
    place_eye(points, IMAGE_LEFT_EYE, x33, y33, RIGHT_IRIS_CENTER, iris_shift)
    place_eye(points, IMAGE_RIGHT_EYE, x263 - EYE_WIDTH, y263, LEFT_IRIS_CENTER, iris_shift)
    return points


class TestHeadPose:
    """Tests for solvePnP-based head pose."""

    def test_frontal_face(self):
        pitch, yaw, roll = estimate_head_pose(synthetic_mesh(), FRAME_SIZE)

        assert pitch == pytest.approx(0.0, abs=1.0)
        assert yaw == pytest.approx(0.0, abs=1.0)
        assert roll == pytest.approx(0.0, abs=1.0)

    def test_turned_face(self):
        _, yaw, _ = estimate_head_pose(synthetic_mesh(yaw_deg=10.0), FRAME_SIZE)

        assert yaw == pytest.approx(10.0, abs=1.0)


class TestEyeOpenness:
    """Tests for the eye aspect ratio."""

    @pytest.fixture
    def open_eye(self):
        # corner, upper, upper, corner, lower, lower; EAR = 6 / 20 = 0.3
        return np.array(
            [(0, 0), (3, -1.5), (7, -1.5), (10, 0), (7, 1.5), (3, 1.5)],
            dtype=np.float64,
        )

    def test_aspect_ratio(self, open_eye):
        assert eye_aspect_ratio(open_eye, range(6)) == pytest.approx(0.3)

    def test_open_eye_saturates(self, open_eye):
        assert eye_openness(open_eye, range(6)) == pytest.approx(1.0)

    def test_closed_eye(self, open_eye):
        closed = open_eye.copy()
        closed[:, 1] = 0.0

        assert eye_openness(closed, range(6)) == 0.0

    def test_zero_width(self):
        assert eye_aspect_ratio(np.zeros((6, 2)), range(6)) == 0.0


class TestBuildLandmarkFrame:
    """Tests for build_landmark_frame."""

    def test_contours_in_order(self):
        points = synthetic_mesh()

        frame = build_landmark_frame(points, FRAME_SIZE, tracking_id=3)

        np.testing.assert_allclose(frame.left_eye.contour, points[LEFT_EYE_CONTOUR])
        np.testing.assert_allclose(frame.right_eye.contour, points[RIGHT_EYE_CONTOUR])
        np.testing.assert_allclose(frame.left_eye.landmark, points[LEFT_IRIS_CENTER])
        assert frame.left_eye.contour.shape == (16, 2)
        assert frame.tracking_id == 3

    def test_pose_and_openness(self):
        frame = build_landmark_frame(synthetic_mesh(), FRAME_SIZE)

        assert frame.head_yaw == pytest.approx(0.0, abs=1.0)
        assert 0.0 <= frame.left_eye_open <= 1.0
        assert 0.0 <= frame.right_eye_open <= 1.0
        assert frame.has_eyes

    def test_contour_copied(self):
        points = synthetic_mesh()
        frame = build_landmark_frame(points, FRAME_SIZE)

        points[LEFT_EYE_CONTOUR[0]] = (-1.0, -1.0)

        assert frame.left_eye.contour[0][0] != -1.0

    def test_incomplete_mesh(self):
        with pytest.raises(ValueError):
            build_landmark_frame(np.zeros((468, 2)), FRAME_SIZE)


class TestEyeDirection:
    """Both eyes must report the same horizontal direction for the same gaze."""

    @pytest.fixture
    def extractor(self):
        return EyeSignalExtractor()

    def signals(self, extractor, iris_shift):
        frame = build_landmark_frame(mesh_with_eyes(iris_shift), FRAME_SIZE)
        left = extractor.extract(frame.left_eye.contour, frame.left_eye.landmark)
        right = extractor.extract(frame.right_eye.contour, frame.right_eye.landmark)
        return left, right, combine_eyes(left, right)

    def test_contours_start_at_smaller_image_x(self):
        frame = build_landmark_frame(mesh_with_eyes(), FRAME_SIZE)

        for eye in (frame.left_eye, frame.right_eye):
            assert eye.contour[0][0] < eye.contour[8][0]
            assert eye.contour[4][1] < eye.contour[12][1]

    @pytest.mark.parametrize("shift", [6.0, -6.0])
    def test_both_eyes_agree(self, extractor, shift):
        centred, _, _ = self.signals(extractor, 0.0)
        left, right, _ = self.signals(extractor, shift)

        assert left.gaze_x == pytest.approx(right.gaze_x)
        assert (left.gaze_x - centred.gaze_x) * shift > 0

    def test_iris_shift_survives_combination(self, extractor):
        _, _, centred = self.signals(extractor, 0.0)
        _, _, shifted_right = self.signals(extractor, 6.0)
        _, _, shifted_left = self.signals(extractor, -6.0)

        # 0.7 * 6 / 40 on top of the shared contour asymmetry
        assert shifted_right[0] - centred[0] == pytest.approx(0.105)
        assert shifted_left[0] - centred[0] == pytest.approx(-0.105)
        assert shifted_right[0] > 0.0 > shifted_left[0]
