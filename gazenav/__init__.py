"""
GazeNav - gaze-driven cursor and dwell selection.

Turns per-frame facial landmarks into a smoothed gaze direction, maps it to
screen coordinates (calibrated or not) and detects dwell fixations as a
selection gesture for users who cannot use touch or mouse input.

Privacy:
- All processing happens locally
- No video recording
- Calibration is kept in memory only
"""

__version__ = "0.1.0"
__license__ = "MIT"
