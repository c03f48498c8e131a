"""
Signal normalization stages between eye combination and smoothing.

BaselineCalibrator  - removes the "looking straight" offset
HeadPoseFusion      - adds smoothed head rotation to the eye signal
AutoRangeGainController - amplifies the user's observed range toward +/-1
"""

from typing import Optional, Tuple

import numpy as np

from gazenav.utils.logger import get_logger

logger = get_logger(__name__)


Vec2 = Tuple[float, float]


class BaselineCalibrator:
    """
    Learn the resting gaze offset during a warm-up window.

    The first `frames` samples are averaged; until then the output is zero.
    """

    def __init__(self, frames: int = 20):
        self._frames = frames
        self._sum_x = 0.0
        self._sum_y = 0.0
        self._count = 0
        self._baseline: Optional[Vec2] = None

    def apply(self, raw: Vec2) -> Vec2:
        """Subtract the baseline, or accumulate it while warming up."""
        if self._baseline is None:
            self._sum_x += raw[0]
            self._sum_y += raw[1]
            self._count += 1
            if self._count >= self._frames:
                self._baseline = (self._sum_x / self._count, self._sum_y / self._count)
                logger.info(
                    f"Baseline set at ({self._baseline[0]:.4f}, {self._baseline[1]:.4f})"
                )
            return (0.0, 0.0)

        return (raw[0] - self._baseline[0], raw[1] - self._baseline[1])

    @property
    def is_set(self) -> bool:
        return self._baseline is not None

    @property
    def baseline(self) -> Optional[Vec2]:
        return self._baseline

    @property
    def samples_collected(self) -> int:
        return self._count

    def reset(self):
        """Forget the baseline and restart the warm-up window."""
        self._sum_x = 0.0
        self._sum_y = 0.0
        self._count = 0
        self._baseline = None
        logger.debug("Baseline reset")


class HeadPoseFusion:
    """
    Fuse smoothed head yaw/pitch into the gaze vector.

    Head rotation gives a larger and steadier signal than eye rotation alone.
    """

    def __init__(
        self,
        ema_weight: float = 0.3,
        yaw_gain: float = 0.04,
        pitch_gain: float = 0.035,
    ):
        self._weight = ema_weight
        self._yaw_gain = yaw_gain
        self._pitch_gain = pitch_gain
        self._ema_yaw = 0.0
        self._ema_pitch = 0.0

    def fuse(self, gaze: Vec2, yaw: Optional[float], pitch: Optional[float]) -> Vec2:
        """
        Update head EMAs and return the fused gaze.

        Missing angles count as 0 degrees.
        """
        yaw = 0.0 if yaw is None else yaw
        pitch = 0.0 if pitch is None else pitch

        self._ema_yaw = self._ema_yaw * (1.0 - self._weight) + yaw * self._weight
        self._ema_pitch = self._ema_pitch * (1.0 - self._weight) + pitch * self._weight

        return (
            gaze[0] + self._ema_yaw * self._yaw_gain,
            gaze[1] + self._ema_pitch * self._pitch_gain,
        )

    @property
    def yaw(self) -> float:
        return self._ema_yaw

    @property
    def pitch(self) -> float:
        return self._ema_pitch

    def reset(self):
        self._ema_yaw = 0.0
        self._ema_pitch = 0.0


class AutoRangeGainController:
    """
    Per-axis dynamic gain from the observed signal range.

    Bounds only ever expand. Gain is 1.0 until `warmup` samples were seen,
    then 2.0 / range clipped to [min_gain, max_gain].
    """

    def __init__(
        self,
        warmup: int = 30,
        target_span: float = 2.0,
        min_gain: float = 1.0,
        max_gain: float = 40.0,
        min_range: float = 0.01,
        creep: float = 0.05,
    ):
        self._warmup = warmup
        self._target_span = target_span
        self._min_gain = min_gain
        self._max_gain = max_gain
        self._min_range = min_range
        self._creep = creep

        self._min = np.zeros(2)
        self._max = np.zeros(2)
        self._samples = 0

    def update(self, sample: Vec2):
        """Fold one sample into the tracked range."""
        s = np.asarray(sample, dtype=np.float64)
        self._samples += 1

        if self._samples == 1:
            self._min = s.copy()
            self._max = s.copy()
            return

        # Creep toward the sample, then snap to a new extreme
        below = s < self._min
        above = s > self._max
        self._min[below] = self._min[below] * (1.0 - self._creep) + s[below] * self._creep
        self._max[above] = self._max[above] * (1.0 - self._creep) + s[above] * self._creep

        self._min = np.minimum(self._min, s)
        self._max = np.maximum(self._max, s)

    def _axis_gain(self, axis: int) -> float:
        if self._samples < self._warmup:
            return 1.0
        span = self._max[axis] - self._min[axis]
        if span < self._min_range:
            return 1.0
        return float(np.clip(self._target_span / span, self._min_gain, self._max_gain))

    @property
    def gain(self) -> Vec2:
        return (self._axis_gain(0), self._axis_gain(1))

    def apply(self, sample: Vec2) -> Vec2:
        """Update the range and return the gained sample."""
        self.update(sample)
        gx, gy = self.gain
        return (sample[0] * gx, sample[1] * gy)

    @property
    def samples(self) -> int:
        return self._samples

    @property
    def bounds(self) -> Tuple[Vec2, Vec2]:
        """((min_x, min_y), (max_x, max_y))"""
        return (
            (float(self._min[0]), float(self._min[1])),
            (float(self._max[0]), float(self._max[1])),
        )

    def reset(self):
        self._min = np.zeros(2)
        self._max = np.zeros(2)
        self._samples = 0
