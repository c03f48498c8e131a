"""
OpenCV frame source.

Frames are converted to RGB for the face detector and kept in memory only.
"""

import time
from dataclasses import dataclass
from typing import Iterator, Optional, Tuple

import cv2
import numpy as np

from gazenav.core.config import CameraConfig
from gazenav.utils.logger import get_logger

logger = get_logger(__name__)


# frames() gives up after this many failed reads in a row
MAX_CONSECUTIVE_FAILURES = 30


class CameraError(Exception):
    """Camera could not be opened or stopped delivering frames."""

    pass


@dataclass
class CameraFrame:
    """One captured frame."""

    image: np.ndarray  # RGB, (H, W, 3)
    timestamp: float  # Monotonic seconds at capture
    frame_number: int

    @property
    def size(self) -> Tuple[int, int]:
        """(width, height)"""
        height, width = self.image.shape[:2]
        return (width, height)

    @property
    def timestamp_ms(self) -> float:
        return self.timestamp * 1000.0


class Camera:
    """
    Webcam capture.

    Use as a context manager, or call open() / close() directly; close() is
    idempotent.
    """

    def __init__(self, config: CameraConfig):
        self._config = config
        self._capture: Optional[cv2.VideoCapture] = None
        self._frame_count = 0
        self._failures = 0

    def open(self):
        """
        Open the device, apply the requested resolution and drop warm-up frames.

        Raises:
            CameraError: If the device cannot be opened
        """
        if self.is_open:
            return

        capture = cv2.VideoCapture(self._config.camera_index)
        if not capture.isOpened():
            capture.release()
            raise CameraError(
                f"Failed to open camera {self._config.camera_index}. "
                "Check if camera is connected and not used by another application."
            )

        capture.set(cv2.CAP_PROP_FRAME_WIDTH, self._config.frame_width)
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, self._config.frame_height)

        # Auto exposure settles over the first frames
        for _ in range(self._config.warmup_frames):
            capture.read()

        self._capture = capture
        self._frame_count = 0
        self._failures = 0

        logger.info(
            f"Camera {self._config.camera_index} opened: "
            f"{int(capture.get(cv2.CAP_PROP_FRAME_WIDTH))}x"
            f"{int(capture.get(cv2.CAP_PROP_FRAME_HEIGHT))}"
        )

    def read_frame(self) -> Optional[CameraFrame]:
        """
        Grab one frame.

        Returns:
            RGB CameraFrame, or None if the camera is closed or the read failed
        """
        if self._capture is None:
            return None

        ok, bgr = self._capture.read()
        if not ok or bgr is None:
            self._failures += 1
            logger.debug(f"Frame read failed ({self._failures} in a row)")
            return None

        self._failures = 0
        self._frame_count += 1
        return CameraFrame(
            image=cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB),
            timestamp=time.monotonic(),
            frame_number=self._frame_count,
        )

    def frames(self) -> Iterator[CameraFrame]:
        """
        Yield frames until the camera is closed.

        Raises:
            CameraError: After MAX_CONSECUTIVE_FAILURES failed reads in a row
        """
        while self._capture is not None:
            frame = self.read_frame()
            if frame is not None:
                yield frame
            elif self._failures >= MAX_CONSECUTIVE_FAILURES:
                raise CameraError(
                    f"Camera {self._config.camera_index} stopped delivering frames"
                )

    def close(self):
        if self._capture is not None:
            self._capture.release()
            self._capture = None
            logger.info("Camera closed")

    @property
    def is_open(self) -> bool:
        return self._capture is not None

    @property
    def frame_count(self) -> int:
        return self._frame_count

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
