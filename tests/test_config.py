"""
Tests for configuration defaults and validation.
"""

import pytest

from gazenav.core.config import (
    AppConfig,
    CameraConfig,
    DwellConfig,
    GazeConfig,
    CalibrationConfig,
    get_default_config,
)


class TestDefaults:
    """Tests for default values."""

    def test_default_config_valid(self):
        config = get_default_config()

        assert config.dwell.dwell_time_ms == 2000
        assert config.dwell.cooldown_ms == 500
        assert config.dwell.fixation_radius == 50.0
        assert config.gaze.smoothing_window == 5
        assert config.gaze.min_confidence == 0.3
        assert config.camera.target_fps == 15

    def test_nine_point_grid(self):
        targets = CalibrationConfig().target_positions

        assert len(targets) == 9
        assert targets[0] == (0.1, 0.1)
        assert targets[-1] == (0.9, 0.9)

    def test_log_level_from_environment(self, monkeypatch):
        monkeypatch.setenv("GAZENAV_LOG_LEVEL", "DEBUG")

        assert AppConfig().log_level == "DEBUG"


class TestValidation:
    """Tests for rejected configurations."""

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"gaze": GazeConfig(smoothing_alpha=0.0)},
            {"gaze": GazeConfig(smoothing_window=0)},
            {"gaze": GazeConfig(min_confidence=1.5)},
            {"gaze": GazeConfig(min_gain=50.0)},
            {"dwell": DwellConfig(dwell_time_ms=0)},
            {"dwell": DwellConfig(cooldown_ms=-1)},
            {"dwell": DwellConfig(fixation_radius=0.0)},
            {"calibration": CalibrationConfig(min_points=2)},
            {"calibration": CalibrationConfig(outlier_trim_percent=0.5)},
            {"camera": CameraConfig(target_fps=0)},
            {"camera": CameraConfig(target_fps=120)},
            {"screen_width": 0},
        ],
    )
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            AppConfig(**kwargs)
