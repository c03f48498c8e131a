"""
Dwell (fixation) detection over the cursor stream.

State transitions:
    IDLE -> DWELLING -> TRIGGERED -> COOLDOWN -> IDLE

TRIGGERED is never observable between calls: the update that completes a
dwell moves straight to COOLDOWN and returns the TRIGGERED event.
"""

import math
import time
from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable, Optional, Tuple

from gazenav.core.config import DwellConfig
from gazenav.utils.logger import get_logger

logger = get_logger(__name__)


Point = Tuple[float, float]
Rect = Tuple[float, float, float, float]  # (left, top, right, bottom)


class DwellState(Enum):
    """Dwell selection states."""

    IDLE = auto()  # Not dwelling on anything
    DWELLING = auto()  # Fixating within the radius
    TRIGGERED = auto()  # Dwell time reached
    COOLDOWN = auto()  # Ignoring input after a trigger


class DwellEventKind(Enum):
    STARTED = auto()
    TRIGGERED = auto()
    CANCELLED = auto()


@dataclass(frozen=True)
class DwellEvent:
    """Emitted on dwell start, completion and cancellation."""

    kind: DwellEventKind
    position: Optional[Point]
    timestamp_ms: float


def now_ms() -> float:
    return time.monotonic() * 1000.0


class DwellDetector:
    """
    Detect sustained fixation as a selection gesture.

    Events are returned from `update()`. A single listener may also be
    registered to receive every event.
    """

    def __init__(
        self,
        dwell_time_ms: int = 2000,
        cooldown_ms: int = 500,
        fixation_radius: float = 50.0,
    ):
        if dwell_time_ms <= 0:
            raise ValueError("dwell_time_ms must be positive")

        self.dwell_time_ms = dwell_time_ms
        self.cooldown_ms = cooldown_ms
        self.fixation_radius = fixation_radius

        self._state = DwellState.IDLE
        self._fixation_center: Optional[Point] = None
        self._fixation_start: Optional[float] = None
        self._last_trigger: Optional[float] = None

        self._listener: Optional[Callable[[DwellEvent], None]] = None

    @classmethod
    def from_config(cls, config: DwellConfig) -> "DwellDetector":
        return cls(
            dwell_time_ms=config.dwell_time_ms,
            cooldown_ms=config.cooldown_ms,
            fixation_radius=config.fixation_radius,
        )

    def set_listener(self, listener: Optional[Callable[[DwellEvent], None]]):
        self._listener = listener

    @property
    def state(self) -> DwellState:
        return self._state

    @property
    def fixation_center(self) -> Optional[Point]:
        return self._fixation_center

    @property
    def last_trigger_ms(self) -> Optional[float]:
        return self._last_trigger

    def progress(self, timestamp_ms: Optional[float] = None) -> float:
        """Fraction of the dwell time elapsed (0 outside DWELLING)."""
        if self._state != DwellState.DWELLING or self._fixation_start is None:
            return 0.0
        now = now_ms() if timestamp_ms is None else timestamp_ms
        elapsed = now - self._fixation_start
        return min(max(elapsed / self.dwell_time_ms, 0.0), 1.0)

    def update(
        self, position: Point, timestamp_ms: Optional[float] = None
    ) -> Optional[DwellEvent]:
        """
        Feed one cursor position.

        Args:
            position: Cursor (x, y) in screen pixels
            timestamp_ms: Monotonic time of the sample (now when omitted)

        Returns:
            The event produced by this update, if any
        """
        now = now_ms() if timestamp_ms is None else timestamp_ms

        if self._state == DwellState.COOLDOWN:
            if self._last_trigger is not None and now - self._last_trigger >= self.cooldown_ms:
                self._state = DwellState.IDLE
                self._fixation_center = None
                self._fixation_start = None
            return None

        if self._fixation_center is None:
            self._fixation_center = (float(position[0]), float(position[1]))
            return None

        distance = math.hypot(
            position[0] - self._fixation_center[0],
            position[1] - self._fixation_center[1],
        )

        if distance > self.fixation_radius:
            event = self._cancel(now)
            self._fixation_center = (float(position[0]), float(position[1]))
            return event

        event = None
        if self._state == DwellState.IDLE:
            self._state = DwellState.DWELLING
            self._fixation_start = now
            event = self._emit(DwellEventKind.STARTED, self._fixation_center, now)

        if self._state == DwellState.DWELLING:
            if now - self._fixation_start >= self.dwell_time_ms:
                self._state = DwellState.TRIGGERED
                logger.info(
                    f"Dwell triggered at ({self._fixation_center[0]:.0f}, "
                    f"{self._fixation_center[1]:.0f})"
                )
                self._last_trigger = now
                self._state = DwellState.COOLDOWN
                event = self._emit(DwellEventKind.TRIGGERED, self._fixation_center, now)

        return event

    def _cancel(self, now: float) -> Optional[DwellEvent]:
        event = None
        if self._state == DwellState.DWELLING:
            event = self._emit(DwellEventKind.CANCELLED, self._fixation_center, now)
        self._state = DwellState.IDLE
        self._fixation_start = None
        return event

    def _emit(self, kind: DwellEventKind, position: Optional[Point], now: float) -> DwellEvent:
        event = DwellEvent(kind=kind, position=position, timestamp_ms=now)
        if self._listener is not None:
            self._listener(event)
        return event

    def reset(self, timestamp_ms: Optional[float] = None) -> Optional[DwellEvent]:
        """
        Force IDLE with no fixation center (e.g. tracking lost).

        Returns:
            CANCELLED event if a dwell was in progress
        """
        now = now_ms() if timestamp_ms is None else timestamp_ms
        event = self._cancel(now)
        self._fixation_center = None
        self._last_trigger = None
        return event

    def is_dwelling_on(self, region: Rect) -> bool:
        """True while dwelling with the fixation center inside `region`."""
        if self._state != DwellState.DWELLING or self._fixation_center is None:
            return False
        left, top, right, bottom = region
        x, y = self._fixation_center
        return left <= x < right and top <= y < bottom

    def progress_for(self, region: Rect, timestamp_ms: Optional[float] = None) -> float:
        """Dwell progress if dwelling on `region`, else 0."""
        if not self.is_dwelling_on(region):
            return 0.0
        return self.progress(timestamp_ms)
