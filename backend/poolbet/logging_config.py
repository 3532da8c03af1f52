import logging
import sys

from poolbet.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str | None = None) -> logging.Logger:
    """
    Configure the package logger with a console handler.

    Args:
        level: Level name; defaults to settings.LOG_LEVEL

    Returns:
        The configured "poolbet" logger
    """
    logger = logging.getLogger("poolbet")
    logger.setLevel((level or settings.LOG_LEVEL).upper())

    # Clear existing handlers so repeated setup doesn't duplicate output
    if logger.handlers:
        logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(console_handler)

    return logger
