# === FILE: adaptive_crawler/logger.py ===
"""Logging setup for **AdaptiveCrawler**.

Every module logs to the ``"AdaptiveCrawler"`` channel via
``logging.getLogger(LOGGER_NAME)``; nothing is attached until the CLI (or an
embedding service) calls :func:`configure`. Console output goes to stderr so
that reports printed to stdout stay machine-readable. With ``log_file`` a
rotating file handler is added next to it.
"""
from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Final, Optional, TextIO, Union

LOGGER_NAME: Final[str] = "AdaptiveCrawler"
DEFAULT_FORMAT: Final[str] = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

MAX_LOG_BYTES: Final[int] = 5 * 1024 * 1024
LOG_BACKUPS: Final[int] = 3

logger: logging.Logger = logging.getLogger(LOGGER_NAME)


def _level(value: Union[int, str]) -> int:
    if isinstance(value, int):
        return value
    resolved = logging.getLevelName(value.upper())
    if not isinstance(resolved, int):
        raise ValueError(f"unknown log level: {value!r}")
    return resolved


def _rotating_file(path: Path) -> RotatingFileHandler:
    path.parent.mkdir(parents=True, exist_ok=True)
    return RotatingFileHandler(path, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUPS, encoding="utf-8")


def configure(
    level: Union[int, str] = "INFO",
    log_file: Union[str, Path, None] = None,
    log_format: str = DEFAULT_FORMAT,
    *,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """Replace the crawler's handlers: console (stderr by default) plus an
    optional rotating *log_file*. Levels are accepted in any case."""
    resolved_level = _level(level)
    formatter = logging.Formatter(log_format)
    handlers: list[logging.Handler] = [logging.StreamHandler(stream or sys.stderr)]
    if log_file is not None:
        handlers.append(_rotating_file(Path(log_file)))

    for old in list(logger.handlers):
        logger.removeHandler(old)
        old.close()
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.setLevel(resolved_level)
    logger.propagate = False
    return logger


# name used by the CLI
init_logging = configure

__all__ = ["logger", "configure", "init_logging", "LOGGER_NAME", "DEFAULT_FORMAT"]
