"""
Logging configuration for GazeNav.

Everything logs under the "gazenav" namespace; the host configures that one
logger and module loggers inherit from it. Nothing is written to disk unless
a log file is given.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Optional, Union

ROOT_LOGGER = "gazenav"
LEVEL_ENV_VAR = "GAZENAV_LOG_LEVEL"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _resolve_level(level: Optional[str]) -> int:
    if level is None:
        level = os.getenv(LEVEL_ENV_VAR, "WARNING")
    return getattr(logging, level.upper(), logging.WARNING)


def setup_logger(
    name: str = ROOT_LOGGER,
    level: Optional[str] = None,
    log_file: Optional[Union[str, Path]] = None,
) -> logging.Logger:
    """
    Configure console (and optional file) output for a logger.

    Calling it again updates the level and replaces the handlers, so a host
    can reconfigure at runtime without duplicating output.

    Args:
        name: Logger name, normally the package root
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL; falls back to
            $GAZENAV_LOG_LEVEL, then WARNING
        log_file: Append log records to this file as well

    Returns:
        The configured logger
    """
    logger = logging.getLogger(name)
    numeric_level = _resolve_level(level)
    logger.setLevel(numeric_level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    logger.addHandler(console)

    if log_file is not None:
        try:
            file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        except OSError as e:
            logger.warning(f"Failed to enable file logging: {e}")
        else:
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
            logger.info(f"File logging enabled: {log_file}")

    logger.propagate = False
    return logger


def get_logger(name: str) -> logging.Logger:
    """Module logger (pass __name__)."""
    return logging.getLogger(name)
