"""
Configuration management for GazeNav.

All tunable values live here with their defaults. The gaze-signal constants
(fusion weights, head-pose gains, sensitivity boosts) were tuned by fitting
against recorded sessions; they are exposed so they can be overridden rather
than re-derived.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple
import os


@dataclass
class CameraConfig:
    """Camera capture configuration."""

    camera_index: int = 0
    frame_width: int = 640
    frame_height: int = 480
    target_fps: int = 15  # Processing rate cap, frames beyond it are dropped
    warmup_frames: int = 10  # Frames to skip after camera init


@dataclass
class GazeConfig:
    """Gaze estimation configuration."""

    # EMA coefficient of the final gaze vector (higher = more responsive)
    smoothing_alpha: float = 0.25

    # Host-facing smoothing knob; alpha becomes smoothing_window / 20
    smoothing_window: int = 5

    # Per-eye signal extraction
    min_contour_points: int = 9
    min_eye_width: float = 5.0
    ratio_weight: float = 0.7  # Corner-ratio share of horizontal signal
    asymmetry_weight: float = 0.3  # Contour asymmetry share

    # Baseline ("looking straight") warm-up
    baseline_frames: int = 20

    # Head pose fusion (degrees -> gaze units)
    head_ema_weight: float = 0.3
    head_yaw_gain: float = 0.04
    head_pitch_gain: float = 0.035

    # Auto-range gain
    range_warmup: int = 30
    range_target_span: float = 2.0
    min_gain: float = 1.0
    max_gain: float = 40.0
    min_range: float = 0.01
    range_creep: float = 0.05

    # Uncalibrated screen mapping
    boost_x: float = 6.0
    boost_y: float = 7.0
    dead_zone: float = 0.01
    power_exponent: float = 0.7

    # Minimum confidence to report a cursor
    min_confidence: float = 0.3

    # Presentation only, passed through to the host
    cursor_size: float = 40.0


@dataclass
class DwellConfig:
    """Dwell selection configuration."""

    dwell_time_ms: int = 2000
    cooldown_ms: int = 500
    fixation_radius: float = 50.0  # Pixels


@dataclass
class CalibrationConfig:
    """Calibration procedure configuration."""

    # Normalized 3x3 grid, row by row from the top-left
    target_positions: Tuple[Tuple[float, float], ...] = (
        (0.1, 0.1),
        (0.5, 0.1),
        (0.9, 0.1),
        (0.1, 0.5),
        (0.5, 0.5),
        (0.9, 0.5),
        (0.1, 0.9),
        (0.5, 0.9),
        (0.9, 0.9),
    )

    # Trim this proportion from each end (by horizontal value) before averaging
    outlier_trim_percent: float = 0.2
    min_samples_for_trim: int = 6

    # Session must capture at least this many points to fit a profile
    min_points: int = 5

    # Below this gaze span on both axes the calibration is rejected
    min_gaze_range: float = 0.01


@dataclass
class AppConfig:
    """Main application configuration."""

    camera: CameraConfig = field(default_factory=CameraConfig)
    gaze: GazeConfig = field(default_factory=GazeConfig)
    dwell: DwellConfig = field(default_factory=DwellConfig)
    calibration: CalibrationConfig = field(default_factory=CalibrationConfig)

    # Target display (pixels)
    screen_width: int = 1920
    screen_height: int = 1080

    version: str = "0.1.0"

    log_level: str = field(
        default_factory=lambda: os.getenv("GAZENAV_LOG_LEVEL", "WARNING")
    )

    # Optional file log (off by default)
    log_file: Optional[Path] = None

    def __post_init__(self):
        """Validate configuration after initialization."""
        self._validate()

    def _validate(self):
        """Validate configuration parameters."""
        if not 0.0 < self.gaze.smoothing_alpha <= 1.0:
            raise ValueError("smoothing_alpha must be in (0.0, 1.0]")

        if self.gaze.smoothing_window < 1:
            raise ValueError("smoothing_window must be at least 1")

        if self.gaze.baseline_frames < 1:
            raise ValueError("baseline_frames must be at least 1")

        if not 0.0 <= self.gaze.min_confidence <= 1.0:
            raise ValueError("min_confidence must be between 0.0 and 1.0")

        if not 0.0 <= self.gaze.dead_zone < 1.0:
            raise ValueError("dead_zone must be in [0.0, 1.0)")

        if self.gaze.min_gain > self.gaze.max_gain:
            raise ValueError("min_gain must not exceed max_gain")

        if self.dwell.dwell_time_ms <= 0:
            raise ValueError("dwell_time_ms must be positive")

        if self.dwell.cooldown_ms < 0:
            raise ValueError("cooldown_ms must be non-negative")

        if self.dwell.fixation_radius <= 0:
            raise ValueError("fixation_radius must be positive")

        if not 0.0 <= self.calibration.outlier_trim_percent < 0.5:
            raise ValueError("outlier_trim_percent must be in [0.0, 0.5)")

        if self.calibration.min_points < 3:
            raise ValueError("min_points must be at least 3")

        if self.screen_width <= 0 or self.screen_height <= 0:
            raise ValueError("Invalid screen dimensions")

        if self.camera.target_fps < 1 or self.camera.target_fps > 60:
            raise ValueError("target_fps must be between 1 and 60")


def get_default_config() -> AppConfig:
    """
    Get default application configuration.

    Returns:
        AppConfig instance with default values
    """
    return AppConfig()
