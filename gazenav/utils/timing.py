"""
Timing utilities for frame-rate control and performance monitoring.
"""

import time
from typing import Optional

from gazenav.vision.smoothing import MovingAverageBuffer


class FPSCounter:
    """
    Track frames per second over a rolling window of frame intervals.
    """

    def __init__(self, window_size: int = 30):
        """
        Args:
            window_size: Number of frame intervals to average over
        """
        self._intervals = MovingAverageBuffer(window_size)
        self._last_time: Optional[float] = None

    def tick(self, now: Optional[float] = None) -> float:
        """
        Register a frame and return current FPS.

        Args:
            now: Frame time in seconds (perf_counter when omitted)
        """
        current_time = time.perf_counter() if now is None else now

        if self._last_time is not None:
            self._intervals.push(current_time - self._last_time)

        self._last_time = current_time

        return self.fps

    @property
    def fps(self) -> float:
        """Current FPS, or 0.0 if fewer than two frames were seen."""
        avg = self._intervals.mean()
        if avg is None or avg[0] <= 0:
            return 0.0

        return 1.0 / float(avg[0])

    def reset(self):
        self._intervals.clear()
        self._last_time = None


class FrameThrottle:
    """
    Admission control for incoming camera frames.

    A frame is admitted only if no other frame is being processed (busy-skip)
    and at least 1 / target_fps seconds have passed since the last admitted
    frame. Never sleeps; rejected frames are simply dropped.

    Usage:
        if throttle.try_acquire():
            try:
                process(frame)
            finally:
                throttle.release()
    """

    def __init__(self, target_fps: float):
        self._busy = False
        self._last_admit: Optional[float] = None
        self._dropped = 0
        self.target_fps = target_fps

    def try_acquire(self, now: Optional[float] = None) -> bool:
        """
        Claim the processing slot for one frame.

        Args:
            now: Frame time in seconds (perf_counter when omitted)

        Returns:
            True if the frame should be processed
        """
        current_time = time.perf_counter() if now is None else now

        if self._busy:
            self._dropped += 1
            return False

        if (
            self._last_admit is not None
            and current_time - self._last_admit < self._min_interval
        ):
            self._dropped += 1
            return False

        self._busy = True
        self._last_admit = current_time
        return True

    def release(self):
        """Mark the in-flight frame as done."""
        self._busy = False

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def dropped(self) -> int:
        return self._dropped

    @property
    def target_fps(self) -> float:
        return self._target_fps

    @target_fps.setter
    def target_fps(self, fps: float):
        self._target_fps = fps
        self._min_interval = 1.0 / fps if fps > 0 else 0.0

    def reset(self):
        self._busy = False
        self._last_admit = None
        self._dropped = 0
