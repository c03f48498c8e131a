"""
Gaze direction estimation from per-frame landmark data.

Runs the signal chain for one face:
eye extraction -> eye combination -> baseline -> head pose -> auto-range -> EMA
"""

import math
import numpy as np
from typing import Optional, Tuple
from dataclasses import dataclass

from gazenav.core.config import GazeConfig
from gazenav.vision.landmarks import LandmarkFrame, EyeLandmarks
from gazenav.vision.eye_signal import EyeSignal, EyeSignalExtractor, combine_eyes
from gazenav.vision.normalization import (
    BaselineCalibrator,
    HeadPoseFusion,
    AutoRangeGainController,
)
from gazenav.vision.smoothing import TemporalSmoother
from gazenav.utils.logger import get_logger

logger = get_logger(__name__)


# Eye-openness assumed when the detector gives no probability
DEFAULT_EYE_OPENNESS = 0.5

# Both eyes count as agreeing when their offsets are this close
EYE_AGREEMENT_DISTANCE = 0.5


@dataclass
class GazeSample:
    """
    Pipeline output for one frame with a detected face.

    gaze_direction is dimensionless, roughly within [-1, 1] once the
    auto-range gain has warmed up:
    - x: horizontal (negative = toward smaller image x)
    - y: vertical (-1 = up, +1 = down)
    """

    gaze_direction: Tuple[float, float]
    confidence: float  # 0-1
    head_pitch: float = 0.0
    head_yaw: float = 0.0
    head_roll: float = 0.0
    left_eye: Optional[EyeSignal] = None
    right_eye: Optional[EyeSignal] = None
    timestamp_ms: Optional[float] = None

    @property
    def x(self) -> float:
        return self.gaze_direction[0]

    @property
    def y(self) -> float:
        return self.gaze_direction[1]

    def to_array(self) -> np.ndarray:
        """Convert direction to numpy array."""
        return np.array(self.gaze_direction, dtype=np.float64)


class GazeEstimator:
    """
    Estimate a smoothed gaze-direction vector from landmark frames.

    State carried across frames: baseline, head-pose EMA, auto-range bounds
    and the output EMA. `reset()` clears everything except the baseline;
    `full_reset()` clears the baseline too.
    """

    def __init__(self, config: Optional[GazeConfig] = None):
        """
        Args:
            config: Gaze configuration (defaults when omitted)
        """
        self._config = config or GazeConfig()
        c = self._config

        self._extractor = EyeSignalExtractor(
            min_points=c.min_contour_points,
            min_width=c.min_eye_width,
            ratio_weight=c.ratio_weight,
            asymmetry_weight=c.asymmetry_weight,
        )
        self._baseline = BaselineCalibrator(frames=c.baseline_frames)
        self._head = HeadPoseFusion(
            ema_weight=c.head_ema_weight,
            yaw_gain=c.head_yaw_gain,
            pitch_gain=c.head_pitch_gain,
        )
        self._range = AutoRangeGainController(
            warmup=c.range_warmup,
            target_span=c.range_target_span,
            min_gain=c.min_gain,
            max_gain=c.max_gain,
            min_range=c.min_range,
            creep=c.range_creep,
        )
        self._smoother = TemporalSmoother(alpha=c.smoothing_alpha)

        self._last_sample: Optional[GazeSample] = None

        logger.info("GazeEstimator initialized")

    def estimate(
        self, frame: Optional[LandmarkFrame], timestamp_ms: Optional[float] = None
    ) -> Optional[GazeSample]:
        """
        Estimate gaze for one frame.

        Args:
            frame: Landmark data, or None when no face was found
            timestamp_ms: Frame timestamp, copied onto the sample

        Returns:
            GazeSample, or None if no usable eye was found
        """
        if frame is None:
            return None

        left = self._extract(frame.left_eye)
        right = self._extract(frame.right_eye)

        raw = combine_eyes(left, right)
        if raw is None:
            return None

        centered = self._baseline.apply(raw)
        fused = self._head.fuse(centered, frame.head_yaw, frame.head_pitch)
        gained = self._range.apply(fused)
        smoothed = self._smoother.smooth(gained)

        sample = GazeSample(
            gaze_direction=smoothed,
            confidence=self._confidence(frame, left, right),
            head_pitch=self._head.pitch,
            head_yaw=self._head.yaw,
            head_roll=frame.head_roll or 0.0,
            left_eye=left,
            right_eye=right,
            timestamp_ms=timestamp_ms,
        )
        self._last_sample = sample
        return sample

    def _extract(self, eye: Optional[EyeLandmarks]) -> Optional[EyeSignal]:
        if eye is None:
            return None
        return self._extractor.extract(eye.contour, eye.landmark)

    @staticmethod
    def _confidence(
        frame: LandmarkFrame, left: Optional[EyeSignal], right: Optional[EyeSignal]
    ) -> float:
        """
        Heuristic detection confidence in [0, 1].

        Rewards a stable tracking id, each detected eye, open eyes, and
        agreement between the two eyes.
        """
        score = 0.0
        if frame.tracking_id is not None:
            score += 0.15
        if left is not None:
            score += 0.2
        if right is not None:
            score += 0.2

        lo = DEFAULT_EYE_OPENNESS if frame.left_eye_open is None else frame.left_eye_open
        ro = DEFAULT_EYE_OPENNESS if frame.right_eye_open is None else frame.right_eye_open
        score += (lo + ro) / 2.0 * 0.3

        if left is not None and right is not None:
            dx = left.gaze_x - right.gaze_x
            dy = left.gaze_y - right.gaze_y
            if math.hypot(dx, dy) < EYE_AGREEMENT_DISTANCE:
                score += 0.15

        return float(np.clip(score, 0.0, 1.0))

    @property
    def smoothing_factor(self) -> float:
        return self._smoother.alpha

    @smoothing_factor.setter
    def smoothing_factor(self, value: float):
        self._smoother.alpha = value

    @property
    def baseline(self) -> BaselineCalibrator:
        return self._baseline

    @property
    def auto_range(self) -> AutoRangeGainController:
        return self._range

    @property
    def last_sample(self) -> Optional[GazeSample]:
        return self._last_sample

    def reset(self):
        """Clear transient state (tracking loss). Baseline is kept."""
        self._smoother.reset()
        self._head.reset()
        self._range.reset()
        self._last_sample = None

    def full_reset(self):
        """Clear all learned state, including the baseline."""
        self.reset()
        self._baseline.reset()
        logger.info("GazeEstimator fully reset")
