"""Standardized logger utility for the task orchestration layer."""

from __future__ import annotations

import logging
from typing import Optional

DEFAULT_LOGGER_NAME = "tingwu_tasks"
DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
VERBOSE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a logger instance.

    Args:
        name: Logger name (defaults to caller's __name__)

    Returns:
        Logger instance

    Usage:
        from src.utils.logger import get_logger
        logger = get_logger(__name__)
    """
    if name is None:
        import inspect
        frame = inspect.currentframe()
        if frame and frame.f_back:
            name = frame.f_back.f_globals.get("__name__", DEFAULT_LOGGER_NAME)
        else:
            name = DEFAULT_LOGGER_NAME

    return logging.getLogger(name)


def configure_logger(
    level: str = "INFO",
    format_string: Optional[str] = None,
    file_path: Optional[str] = None,
    verbose: bool = False,
) -> None:
    """Configure the root logger with standard settings.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_string: Custom format string
        file_path: Also write log records to this file when given
        verbose: Force DEBUG level and include source locations
    """
    if verbose:
        level = "DEBUG"
        format_string = format_string or VERBOSE_FORMAT
    if format_string is None:
        format_string = DEFAULT_FORMAT

    numeric_level = getattr(logging, level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {level}")

    logging.basicConfig(
        level=numeric_level,
        format=format_string,
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )

    if file_path:
        file_handler = logging.FileHandler(file_path)
        file_handler.setFormatter(logging.Formatter(format_string))
        logging.getLogger().addHandler(file_handler)

    # Vendor SDKs and HTTP clients are chatty at DEBUG
    if not verbose:
        for noisy in ("httpx", "httpcore"):
            logging.getLogger(noisy).setLevel(logging.WARNING)
