"""
Logging setup for ralph_loop.

Configures the ``ralph_loop`` parent logger so every module logger
(ralph_loop.controller, ralph_loop.launcher, ...) inherits its handlers
and level.
"""

from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path

LOGGER_NAME = "ralph_loop"
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

_logging_configured = False


def setup_logging(level: str = "INFO", log_file: str | Path | None = None) -> None:
    """Configure ralph_loop logging with console and optional file output.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: ``None`` disables file logging, anything else is used as
            the path of a rotating log file.
    """
    global _logging_configured
    if _logging_configured:
        return
    _logging_configured = True

    numeric_level = getattr(logging, level.upper(), logging.INFO)

    parent_logger = logging.getLogger(LOGGER_NAME)
    parent_logger.setLevel(numeric_level)
    parent_logger.propagate = False

    fmt = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT)

    console = logging.StreamHandler()
    console.setLevel(numeric_level)
    console.setFormatter(fmt)
    parent_logger.addHandler(console)

    if log_file is None:
        return

    resolved_path = Path(log_file)
    resolved_path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.handlers.RotatingFileHandler(
        resolved_path,
        maxBytes=5 * 1024 * 1024,
        backupCount=3,
        encoding="utf-8",
    )
    file_handler.setLevel(numeric_level)
    file_handler.setFormatter(fmt)
    parent_logger.addHandler(file_handler)


def reset_logging() -> None:
    """Drop handlers installed by :func:`setup_logging` so it can run again."""
    global _logging_configured
    parent_logger = logging.getLogger(LOGGER_NAME)
    for handler in list(parent_logger.handlers):
        parent_logger.removeHandler(handler)
        handler.close()
    parent_logger.propagate = True
    _logging_configured = False
