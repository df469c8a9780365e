"""
Logging for FeatureTracking

Every module logs through a child of the package logger
(FeatureTracking.<module>). Handlers are attached once per run by the
command line; library code only creates loggers.
"""

import logging
import sys
from pathlib import Path
from typing import Optional


ROOT_LOGGER_NAME = "FeatureTracking"

# [2025-10-31 10:15:30] [DEBUG] [FeatureTracking.pipeline] Frame 3: FASTDetector found 412 keypoints
LOG_FORMAT = '[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def get_logger(name: str) -> logging.Logger:
    """
    Get logger for a specific module

    Args:
        name: Module name (e.g., 'pipeline', 'matcher', 'nms')

    Returns:
        Logger instance
    """
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def configure_root_logger(level: str = "INFO", log_file: Optional[str] = None) -> logging.Logger:
    """
    Attach console and optional file output to the package logger

    Handlers from a previous run are closed and replaced, so calling this
    once per run never duplicates output.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path of a log file, appended to; parent folders are created

    Returns:
        The configured package logger
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level.upper())

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, mode='a'))

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger
