"""
GazeNav - gaze-controlled cursor with dwell selection

Headless runner: camera -> face landmarks -> gaze tracker -> OS cursor.
Dwell selections are delivered as left clicks.

Usage:
    python -m gazenav.main
"""

import sys

from gazenav.core.config import AppConfig, get_default_config
from gazenav.core.controller import GazeTracker
from gazenav.vision.camera import Camera, CameraError
from gazenav.vision.dwell import DwellEvent, DwellEventKind
from gazenav.vision.face_tracker import FaceTracker
from gazenav.os_control.cursor_controller import CursorController, CursorControlError
from gazenav.utils.timing import FrameThrottle
from gazenav.utils.logger import setup_logger, get_logger


def run(config: AppConfig) -> int:
    """Run the tracking loop until interrupted."""
    logger = get_logger(__name__)

    tracker = GazeTracker(config, config.screen_width, config.screen_height)
    throttle = FrameThrottle(config.camera.target_fps)

    try:
        cursor = CursorController(config.screen_width, config.screen_height)
    except CursorControlError as e:
        logger.error(str(e))
        return 1

    def on_dwell(event: DwellEvent):
        if event.kind == DwellEventKind.TRIGGERED and event.position is not None:
            cursor.click_at(*event.position)

    tracker.set_dwell_listener(on_dwell)

    face_tracker = FaceTracker()
    camera = Camera(config.camera)

    try:
        camera.open()
    except CameraError as e:
        tracker.report_error("CameraError", str(e))
        face_tracker.close()
        return 1

    tracker.start_tracking()
    logger.info("Tracking loop running (Ctrl+C to stop)")

    status = 0
    try:
        for frame in camera.frames():
            if not throttle.try_acquire(frame.timestamp):
                continue

            try:
                landmarks = face_tracker.process_frame(frame.image)
                result = tracker.process_frame(landmarks, frame.timestamp_ms)
                if result.cursor_pos is not None:
                    cursor.move_to(*result.cursor_pos)
            finally:
                throttle.release()

    except CameraError as e:
        tracker.report_error("CameraError", str(e))
        status = 1

    except KeyboardInterrupt:
        logger.info("Interrupted")

    finally:
        tracker.stop_tracking()
        camera.close()
        face_tracker.close()
        logger.info(
            f"Stopped: {throttle.dropped} frames dropped, "
            f"{cursor.stats.clicks} dwell clicks"
        )

    return status


def main():
    """Main entry point."""
    config = get_default_config()

    setup_logger(level=config.log_level, log_file=config.log_file)

    logger = get_logger(__name__)
    logger.info("=" * 60)
    logger.info("GazeNav Starting")
    logger.info(f"Version: {config.version}")
    logger.info("=" * 60)

    return run(config)


if __name__ == "__main__":
    sys.exit(main())
