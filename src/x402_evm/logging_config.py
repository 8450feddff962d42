"""
Logging configuration for X402
"""

import logging
import os
import sys

LOG_LEVEL_ENV = "X402_LOG_LEVEL"

LOG_FORMAT = "%(asctime)s - %(levelname)-8s %(name)s %(filename)s:%(lineno)d %(message)s"


def _resolve_level(level: int | str | None) -> int:
    if level is None:
        level = os.getenv(LOG_LEVEL_ENV, "INFO")
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        if not isinstance(resolved, int):
            raise ValueError(f"Unknown log level: {level}")
        return resolved
    return level


def setup_logging(level: int | str | None = None, logger_name: str | None = None) -> logging.Logger:
    """
    Attach a stdout handler with timestamp, file and line number information.

    Args:
        level: Logging level; falls back to $X402_LOG_LEVEL, then INFO
        logger_name: Logger to configure (default: root logger)

    Returns:
        The configured logger
    """
    resolved = _resolve_level(level)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    target = logging.getLogger(logger_name)
    target.setLevel(resolved)

    # Replace handlers from an earlier call instead of stacking them
    for handler in target.handlers[:]:
        target.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(resolved)
    console_handler.setFormatter(formatter)
    target.addHandler(console_handler)
    return target


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the given name (typically __name__)"""
    return logging.getLogger(name)
