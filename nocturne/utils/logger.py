"""Structured logging setup for Nocturne."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

from nocturne.utils.constants import APP_NAME

_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s.%(module)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that are chatty at DEBUG (Pillow logs every plugin it probes).
_NOISY_LOGGERS = ("PIL", "PIL.Image", "PIL.PngImagePlugin")


def setup_logger(
    log_level: str = "INFO",
    log_file: str | None = None,
) -> logging.Logger:
    """Configure and return the application logger.

    Calling this again only updates the level; handlers are installed once.

    Args:
        log_level: Logging level string (DEBUG, INFO, WARNING, ERROR).
        log_file: Optional path to a log file. If None, logs only to console.

    Returns:
        Configured logger instance.
    """
    logger = logging.getLogger(APP_NAME)
    level = getattr(logging, log_level.upper(), logging.INFO)
    logger.setLevel(level)

    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(level)
        return logger

    formatter = logging.Formatter(fmt=_LOG_FORMAT, datefmt=_DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.INFO))

    return logger


def get_logger(module_name: str | None = None) -> logging.Logger:
    """Get a child logger for a specific module.

    Args:
        module_name: Dotted module name (e.g. 'core.ingestion').

    Returns:
        Logger instance.
    """
    base = logging.getLogger(APP_NAME)
    if module_name:
        return base.getChild(module_name)
    return base
