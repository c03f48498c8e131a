"""
OS pointer output for the tracked cursor.

Moves the system pointer and clicks on dwell selections through pynput. The
pynput controller is created on first use of the default backend because it
needs a display connection.
"""

import math
import time
from dataclasses import dataclass
from typing import Any, Optional, Tuple

from gazenav.utils.logger import get_logger

logger = get_logger(__name__)


class CursorControlError(Exception):
    """No usable pointer backend."""

    pass


@dataclass
class CursorStats:
    moves: int = 0
    rate_limited: int = 0
    jitter_suppressed: int = 0
    clicks: int = 0


def _create_backend() -> Tuple[Any, Any]:
    """pynput mouse controller and its left button."""
    try:
        from pynput.mouse import Button, Controller
    except ImportError as e:
        raise CursorControlError(f"pynput is not available: {e}") from e
    return Controller(), Button.left


class CursorController:
    """
    Pointer sink for screen positions.

    Positions are clamped to the screen, moves are capped at `max_rate_hz`
    and moves shorter than `min_step_px` are dropped so fixation jitter does
    not wiggle the pointer. disable() is the emergency stop.
    """

    def __init__(
        self,
        screen_width: int,
        screen_height: int,
        max_rate_hz: float = 100.0,
        min_step_px: float = 1.0,
        mouse: Optional[Any] = None,
        button: Optional[Any] = None,
    ):
        """
        Args:
            screen_width: Screen width in pixels
            screen_height: Screen height in pixels
            max_rate_hz: Upper bound on pointer moves per second
            min_step_px: Smaller moves are ignored
            mouse: Object with a writable `position` and `click(button, count)`;
                a pynput Controller when omitted
            button: Button handed to mouse.click() for an injected mouse
        """
        if mouse is None:
            mouse, button = _create_backend()

        self._mouse = mouse
        self._button = button
        self._width = screen_width
        self._height = screen_height
        self._min_interval = 1.0 / max_rate_hz if max_rate_hz > 0 else 0.0
        self._min_step = min_step_px

        self._last_move_at: Optional[float] = None
        self._last_position: Optional[Tuple[int, int]] = None
        self._enabled = True
        self.stats = CursorStats()

        logger.info(
            f"Cursor output {screen_width}x{screen_height}, "
            f"max {max_rate_hz:.0f} moves/s"
        )

    def _to_pixel(self, x: float, y: float) -> Tuple[int, int]:
        px = min(max(int(x), 0), self._width - 1)
        py = min(max(int(y), 0), self._height - 1)
        return (px, py)

    def move_to(self, x: float, y: float, now: Optional[float] = None) -> bool:
        """
        Move the pointer to a screen position.

        Args:
            x, y: Target in screen pixels (clamped)
            now: Monotonic seconds (time.monotonic() when omitted)

        Returns:
            True if the pointer was moved
        """
        if not self._enabled:
            return False

        t = time.monotonic() if now is None else now
        if self._last_move_at is not None and t - self._last_move_at < self._min_interval:
            self.stats.rate_limited += 1
            return False

        target = self._to_pixel(x, y)
        if self._last_position is not None:
            step = math.hypot(
                target[0] - self._last_position[0], target[1] - self._last_position[1]
            )
            if step < self._min_step:
                self.stats.jitter_suppressed += 1
                return False

        try:
            self._mouse.position = target
        except Exception as e:
            logger.error(f"Failed to move cursor: {e}")
            return False

        self._last_move_at = t
        self._last_position = target
        self.stats.moves += 1
        return True

    def click_at(self, x: float, y: float) -> bool:
        """
        Left-click at a screen position (dwell selection).

        Not rate limited.

        Returns:
            True if the click was sent
        """
        if not self._enabled:
            return False

        target = self._to_pixel(x, y)
        try:
            self._mouse.position = target
            self._mouse.click(self._button, 1)
        except Exception as e:
            logger.error(f"Failed to click at {target}: {e}")
            return False

        self._last_position = target
        self.stats.clicks += 1
        logger.info(f"Dwell click at {target}")
        return True

    def enable(self):
        self._enabled = True
        logger.info("Cursor output enabled")

    def disable(self):
        """Emergency stop: ignore all moves and clicks until enable()."""
        self._enabled = False
        logger.info("Cursor output disabled")

    @property
    def is_enabled(self) -> bool:
        return self._enabled
