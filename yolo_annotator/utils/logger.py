"""
Logging Configuration for YOLO Annotator

Provides a unified logging interface for all package modules.
Console output is colorized by level; the level can be set with the
YOLO_ANNOTATOR_LOG_LEVEL environment variable.

Usage:
    from yolo_annotator.utils.logger import get_logger
    logger = get_logger(__name__)
    logger.info("Export started")
    logger.warning("Image not found: %s", path)
"""

import logging
import os
import sys
from pathlib import Path
from typing import Optional

from colorama import Fore, Style, init as colorama_init

colorama_init()


# Default log format
DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_LEVEL_ENV = "YOLO_ANNOTATOR_LOG_LEVEL"

# Module-level cache for loggers
_loggers: dict[str, logging.Logger] = {}


class ColoredFormatter(logging.Formatter):
    """Formatter that adds color to log levels for console output."""

    COLORS = {
        logging.DEBUG: Fore.CYAN,
        logging.INFO: Fore.GREEN,
        logging.WARNING: Fore.YELLOW,
        logging.ERROR: Fore.RED,
        logging.CRITICAL: Fore.RED + Style.BRIGHT,
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelno, "")
        reset = Style.RESET_ALL if color else ""

        original_msg = record.msg
        record.msg = f"{color}{original_msg}{reset}"
        result = super().format(record)
        record.msg = original_msg  # Restore for other handlers

        return result


def _default_level() -> int:
    env_level = os.environ.get(LOG_LEVEL_ENV, "INFO")
    return getattr(logging, env_level.upper(), logging.INFO)


def get_logger(
    name: str,
    level: Optional[int] = None,
    log_format: Optional[str] = None,
    date_format: Optional[str] = None,
) -> logging.Logger:
    """
    Get or create a logger with the specified configuration.

    Args:
        name: Logger name, typically __name__ of the calling module
        level: Logging level (default: from YOLO_ANNOTATOR_LOG_LEVEL or INFO)
        log_format: Custom log format string (optional)
        date_format: Custom date format string (optional)

    Returns:
        Configured logging.Logger instance
    """
    if name in _loggers:
        return _loggers[name]

    logger = logging.getLogger(name)

    # Avoid adding duplicate handlers
    if not logger.handlers:
        level = _default_level() if level is None else level
        logger.setLevel(level)

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(
            ColoredFormatter(
                fmt=log_format or DEFAULT_FORMAT,
                datefmt=date_format or DEFAULT_DATE_FORMAT,
            )
        )
        logger.addHandler(console_handler)

        # Prevent propagation to root logger to avoid duplicate logs
        logger.propagate = False

    _loggers[name] = logger
    return logger


def set_log_level(name: str, level: int) -> None:
    """
    Set the log level for an existing logger.

    Args:
        name: Logger name
        level: New logging level
    """
    if name in _loggers:
        _loggers[name].setLevel(level)
        for handler in _loggers[name].handlers:
            handler.setLevel(level)


def add_file_handler(
    name: str,
    log_file: Path,
    level: int = logging.DEBUG,
    log_format: Optional[str] = None,
) -> None:
    """
    Add a file handler to an existing logger.

    Args:
        name: Logger name
        log_file: Path to log file
        level: File logging level
        log_format: Custom format for file logs
    """
    if name not in _loggers:
        return

    logger = _loggers[name]
    log_file = Path(log_file)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(level)
    file_handler.setFormatter(
        logging.Formatter(
            fmt=log_format or DEFAULT_FORMAT,
            datefmt=DEFAULT_DATE_FORMAT,
        )
    )

    logger.addHandler(file_handler)


def set_global_log_level(level: int) -> None:
    """Set the level of every logger created through get_logger()."""
    for name in list(_loggers):
        set_log_level(name, level)
