"""
Logging Configuration
Sets up the package logger that the demo injects into its CloudRegistry.
Library code only ever calls `logging.getLogger(__name__)`, so nothing is
printed unless an application calls `setup_logging`.
"""
import logging
import sys
from typing import Optional

PACKAGE_LOGGER = "pointcloudvisualizer"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%H:%M:%S"


def _handler(handler: logging.Handler, level: int) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    return handler


def setup_logging(level: int = logging.INFO, log_file: Optional[str] = None) -> logging.Logger:
    """
    Configures the 'pointcloudvisualizer' namespace logger.

    Calling it again replaces the previous handlers instead of stacking them.

    Args:
        level: Logging level (e.g. logging.DEBUG, logging.INFO)
        log_file: Optional path of a file receiving the same records as stdout.

    Returns:
        The package logger, ready to be injected into a CloudRegistry.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)

    for old in list(logger.handlers):
        logger.removeHandler(old)
        old.close()

    logger.addHandler(_handler(logging.StreamHandler(sys.stdout), level))
    if log_file:
        logger.addHandler(_handler(logging.FileHandler(log_file, mode="w", encoding="utf-8"), level))

    logger.debug(f"Logging initialized at level {logging.getLevelName(level)}.")
    return logger
