"""
Temporal smoothing of the gaze vector.

TemporalSmoother is an exponential moving average seeded by its first
sample. MovingAverageBuffer is a fixed-capacity circular window used for
diagnostics that need a plain rolling mean.
"""

import numpy as np
from typing import Optional, Tuple

from gazenav.utils.logger import get_logger

logger = get_logger(__name__)


# Bounds of the host-adjustable smoothing factor
MIN_ALPHA = 0.05
MAX_ALPHA = 0.90


class TemporalSmoother:
    """
    Exponential moving average over 2D samples.

    ema = ema * (1 - alpha) + sample * alpha

    The first sample after construction or reset seeds the average directly,
    so there is no ramp-up from zero.
    """

    def __init__(self, alpha: float = 0.25):
        """
        Args:
            alpha: Smoothing coefficient in (0, 1] (higher = more responsive)
        """
        if not 0.0 < alpha <= 1.0:
            raise ValueError("alpha must be in (0.0, 1.0]")

        self._alpha = alpha
        self._ema: Optional[np.ndarray] = None

        logger.debug(f"TemporalSmoother initialized: alpha={alpha:.2f}")

    def smooth(self, sample: Tuple[float, float]) -> Tuple[float, float]:
        """
        Fold in one sample and return the smoothed value.

        Args:
            sample: Raw (x, y)

        Returns:
            Smoothed (x, y)
        """
        value = np.asarray(sample, dtype=np.float64)

        if self._ema is None:
            self._ema = value
        else:
            self._ema = self._ema * (1.0 - self._alpha) + value * self._alpha

        return (float(self._ema[0]), float(self._ema[1]))

    @property
    def alpha(self) -> float:
        return self._alpha

    @alpha.setter
    def alpha(self, value: float):
        self._alpha = float(np.clip(value, MIN_ALPHA, MAX_ALPHA))
        logger.debug(f"Smoothing alpha updated: {self._alpha:.2f}")

    @property
    def value(self) -> Optional[Tuple[float, float]]:
        """Current smoothed value, or None before the first sample."""
        if self._ema is None:
            return None
        return (float(self._ema[0]), float(self._ema[1]))

    def reset(self):
        """Drop the seed; the next sample reseeds the average."""
        self._ema = None


class MovingAverageBuffer:
    """
    Rolling mean over the last `capacity` values.

    Storage is preallocated; an index cursor overwrites the oldest slot.
    """

    def __init__(self, capacity: int, dims: int = 1):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")

        self._data = np.zeros((capacity, dims), dtype=np.float64)
        self._capacity = capacity
        self._cursor = 0
        self._count = 0

    def push(self, value) -> None:
        self._data[self._cursor] = value
        self._cursor = (self._cursor + 1) % self._capacity
        self._count = min(self._count + 1, self._capacity)

    def mean(self) -> Optional[np.ndarray]:
        """Mean of the stored values, or None when empty."""
        if self._count == 0:
            return None
        return self._data[: self._count].mean(axis=0)

    def __len__(self) -> int:
        return self._count

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def is_full(self) -> bool:
        return self._count == self._capacity

    def clear(self):
        self._cursor = 0
        self._count = 0
