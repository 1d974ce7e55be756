"""
Centralized logging configuration for afx.

Diagnostics are controlled by two environment variables:
AFX_LOG selects the level (TRACE, DEBUG, INFO, WARN, ERROR) and
AFX_LOG_PATH adds a log file that always records everything.
"""

import logging
import os
import sys
from pathlib import Path

LOGGER_NAME = "afx"

_LEVEL_ALIASES = {
    "TRACE": "DEBUG",
    "WARN": "WARNING",
}


def _resolve_level(level: str | None) -> int:
    if not level:
        return logging.WARNING
    name = _LEVEL_ALIASES.get(level.upper(), level.upper())
    value = logging.getLevelName(name)
    if isinstance(value, int):
        return value
    return logging.WARNING


def setup_logging(
    debug: bool = False,
    level: str | None = None,
    log_file: str | None = None,
) -> logging.Logger:
    """
    Configure the afx logger.

    Args:
        debug: Force DEBUG output on the console
        level: Log level name; defaults to $AFX_LOG
        log_file: Optional file path for log output; defaults to $AFX_LOG_PATH

    Returns:
        Configured logger instance
    """
    if level is None:
        level = os.environ.get("AFX_LOG")
    if log_file is None:
        log_file = os.environ.get("AFX_LOG_PATH") or None

    effective_level = logging.DEBUG if debug else _resolve_level(level)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(effective_level)
    console_handler.setFormatter(
        ColoredFormatter(
            "%(levelname_colored)s %(message)s",
            use_colors=sys.stderr.isatty(),
        )
    )
    logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        logger.addHandler(file_handler)

    logger.propagate = False
    return logger


class ColoredFormatter(logging.Formatter):
    """Formatter with colored level names for terminals."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[1;31m",
    }
    RESET = "\033[0m"

    def __init__(self, fmt: str, use_colors: bool = True):
        super().__init__(fmt)
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        levelname = f"[{record.levelname}]"
        if self.use_colors:
            color = self.COLORS.get(record.levelname, "")
            levelname = f"{color}{levelname}{self.RESET}"
        record.levelname_colored = levelname
        return super().format(record)


__all__ = ["setup_logging", "ColoredFormatter", "LOGGER_NAME"]
