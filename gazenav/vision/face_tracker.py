"""
Face and eye landmark detection using MediaPipe Face Mesh.

Converts the 478-point refined mesh into a LandmarkFrame: ordered 16-point
eye contours, iris centres as the eye landmark, head Euler angles from
cv2.solvePnP and eye-openness estimates from the eye aspect ratio.
"""

import math
import cv2
import numpy as np
from typing import Optional, Sequence, Tuple

from gazenav.vision.landmarks import EyeLandmarks, LandmarkFrame
from gazenav.utils.logger import get_logger

logger = get_logger(__name__)


# Eye contours in LandmarkFrame order. Both eyes start at the corner with the
# smaller image x, so the corner ratio grows the same way for either eye:
# first corner, upper lid, second corner, lower lid back to the start.
# "Left" is the subject's left eye.
LEFT_EYE_CONTOUR = [
    362, 398, 384, 385, 386, 387, 388, 466,
    263, 249, 390, 373, 374, 380, 381, 382,
]
RIGHT_EYE_CONTOUR = [
    33, 246, 161, 160, 159, 158, 157, 173,
    133, 155, 154, 153, 145, 144, 163, 7,
]

LEFT_IRIS_CENTER = 473
RIGHT_IRIS_CENTER = 468

# Eye aspect ratio points: corner, upper, upper, corner, lower, lower
LEFT_EYE_EAR = (362, 385, 387, 263, 373, 380)
RIGHT_EYE_EAR = (33, 160, 158, 133, 153, 144)

# Eye aspect ratio of a fully open eye
OPEN_EYE_EAR = 0.3

# Generic 3D face model for solvePnP (mm)
NOSE_TIP = 1
CHIN = 152
FACE_3D_MODEL = np.array(
    [
        (0.0, 0.0, 0.0),  # Nose tip
        (0.0, -330.0, -65.0),  # Chin
        (-225.0, 170.0, -135.0),  # Left eye outer
        (225.0, 170.0, -135.0),  # Right eye outer
        (-150.0, -150.0, -125.0),  # Left mouth
        (150.0, -150.0, -125.0),  # Right mouth
    ],
    dtype=np.float64,
)
POSE_LANDMARK_IDS = [NOSE_TIP, CHIN, 33, 263, 61, 291]

# Refined mesh size (468 face + 10 iris)
MESH_POINTS = 478


def eye_aspect_ratio(points: np.ndarray, indices: Sequence[int]) -> float:
    """Vertical opening over horizontal width of one eye."""
    p1, p2, p3, p4, p5, p6 = (points[i] for i in indices)
    width = float(np.linalg.norm(p1 - p4))
    if width <= 1e-8:
        return 0.0
    return (float(np.linalg.norm(p2 - p6)) + float(np.linalg.norm(p3 - p5))) / (2.0 * width)


def eye_openness(points: np.ndarray, indices: Sequence[int]) -> float:
    """Openness probability in [0, 1] from the eye aspect ratio."""
    return float(np.clip(eye_aspect_ratio(points, indices) / OPEN_EYE_EAR, 0.0, 1.0))


def estimate_head_pose(
    points: np.ndarray, frame_size: Tuple[int, int]
) -> Optional[Tuple[float, float, float]]:
    """
    Head Euler angles from six facial landmarks.

    Args:
        points: Mesh points in pixels, shape (478, 2)
        frame_size: (width, height) of the camera frame

    Returns:
        (pitch, yaw, roll) in degrees, or None if solvePnP fails
    """
    width, height = frame_size
    image_points = np.array([points[i] for i in POSE_LANDMARK_IDS], dtype=np.float64)

    focal = float(width)
    camera_matrix = np.array(
        [[focal, 0, width / 2.0], [0, focal, height / 2.0], [0, 0, 1]],
        dtype=np.float64,
    )
    dist_coeffs = np.zeros((4, 1), dtype=np.float64)

    ok, rvec, _ = cv2.solvePnP(
        FACE_3D_MODEL, image_points, camera_matrix, dist_coeffs, flags=cv2.SOLVEPNP_ITERATIVE
    )
    if not ok:
        return None

    rmat, _ = cv2.Rodrigues(rvec)
    pitch = math.degrees(math.atan2(rmat[2][1], rmat[2][2]))
    yaw = math.degrees(math.atan2(-rmat[2][0], math.hypot(rmat[2][1], rmat[2][2])))
    roll = math.degrees(math.atan2(rmat[1][0], rmat[0][0]))
    return (pitch, yaw, roll)


def build_landmark_frame(
    points: np.ndarray,
    frame_size: Tuple[int, int],
    tracking_id: Optional[int] = None,
) -> LandmarkFrame:
    """
    Build a LandmarkFrame from refined Face Mesh points.

    Args:
        points: Mesh points in pixels, shape (478, 2)
        frame_size: (width, height) of the camera frame
        tracking_id: Stable face id, if the detector provides one

    Returns:
        LandmarkFrame; head angles are None if pose estimation failed
    """
    points = np.asarray(points, dtype=np.float64).reshape(-1, 2)
    if len(points) < MESH_POINTS:
        raise ValueError(f"Expected {MESH_POINTS} refined mesh points, got {len(points)}")

    left = EyeLandmarks(
        contour=points[LEFT_EYE_CONTOUR].copy(),
        landmark=points[LEFT_IRIS_CENTER].copy(),
    )
    right = EyeLandmarks(
        contour=points[RIGHT_EYE_CONTOUR].copy(),
        landmark=points[RIGHT_IRIS_CENTER].copy(),
    )

    pose = estimate_head_pose(points, frame_size)
    pitch, yaw, roll = pose if pose is not None else (None, None, None)

    return LandmarkFrame(
        left_eye=left,
        right_eye=right,
        head_yaw=yaw,
        head_pitch=pitch,
        head_roll=roll,
        left_eye_open=eye_openness(points, LEFT_EYE_EAR),
        right_eye_open=eye_openness(points, RIGHT_EYE_EAR),
        tracking_id=tracking_id,
    )


class FaceTracker:
    """
    Face landmark detection using MediaPipe Face Mesh.

    Frames are processed in memory only; nothing is stored.
    """

    def __init__(
        self,
        min_detection_confidence: float = 0.5,
        min_tracking_confidence: float = 0.5,
    ):
        """
        Args:
            min_detection_confidence: Minimum confidence for face detection
            min_tracking_confidence: Minimum confidence for landmark tracking
        """
        import mediapipe as mp

        # refine_landmarks=True adds the iris points (468-477)
        self._face_mesh = mp.solutions.face_mesh.FaceMesh(
            max_num_faces=1,
            refine_landmarks=True,
            min_detection_confidence=min_detection_confidence,
            min_tracking_confidence=min_tracking_confidence,
        )

        logger.info("FaceTracker initialized with MediaPipe Face Mesh")

    def process_frame(self, frame: np.ndarray) -> Optional[LandmarkFrame]:
        """
        Detect the face in an RGB frame.

        Args:
            frame: RGB image (H, W, 3)

        Returns:
            LandmarkFrame if a face was found, None otherwise
        """
        if frame is None or frame.size == 0:
            return None

        results = self._face_mesh.process(frame)
        if not results.multi_face_landmarks:
            return None

        height, width = frame.shape[:2]
        face = results.multi_face_landmarks[0]
        points = np.array(
            [[lm.x * width, lm.y * height] for lm in face.landmark],
            dtype=np.float64,
        )

        try:
            return build_landmark_frame(points, (width, height))
        except (ValueError, cv2.error) as e:
            logger.debug(f"Discarding face: {e}")
            return None

    def close(self):
        """Release MediaPipe resources."""
        if self._face_mesh is not None:
            self._face_mesh.close()
            self._face_mesh = None
            logger.info("FaceTracker closed")
