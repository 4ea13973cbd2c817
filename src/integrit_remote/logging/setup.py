"""Operation log for integrit-remote.

Every invocation appends to one rotating file so an operator can reconstruct which sites were
staged, checked and re-baselined. Results meant for the operator go to the terminal through the
CLI; the log is only echoed to stderr when ``echo_level`` asks for it.
"""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOGGER_NAME = "integrit_remote"
LOG_FILENAME = "integrit_remote.log"
LOG_FORMAT = "%(asctime)s %(process)d %(levelname)-7s %(module)s: %(message)s"
ECHO_FORMAT = "%(levelname)s: %(message)s"
ROTATE_BYTES = 2 * 1024 * 1024
ROTATE_KEEP = 5

_LEVEL_ALIASES = {"WARN": "WARNING", "FATAL": "CRITICAL"}


def configure_logging(
    log_path: Path | None = None,
    level: str = "INFO",
    echo_level: str | None = None,
) -> logging.Logger:
    """Attach the operation log (and an optional stderr echo) to the package logger.

    Calling this again swaps the handlers, so tests that invoke the CLI repeatedly in one
    process never keep writing to an earlier run's file. A bad level name raises
    ``ValueError``; a log file that cannot be created raises ``OSError``.
    """

    threshold = parse_level(level)
    echo_threshold = parse_level(echo_level) if echo_level is not None else None
    target = log_file_for(log_path)
    target.parent.mkdir(parents=True, exist_ok=True)
    file_handler = RotatingFileHandler(
        target, maxBytes=ROTATE_BYTES, backupCount=ROTATE_KEEP, encoding="utf-8"
    )
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))

    logger = logging.getLogger(LOGGER_NAME)
    for stale in list(logger.handlers):
        logger.removeHandler(stale)
        stale.close()
    logger.propagate = False
    logger.setLevel(threshold)
    logger.addHandler(file_handler)

    if echo_threshold is not None:
        echo = logging.StreamHandler(sys.stderr)
        echo.setLevel(max(threshold, echo_threshold))
        echo.setFormatter(logging.Formatter(ECHO_FORMAT))
        logger.addHandler(echo)
    return logger


def parse_level(name: str) -> int:
    key = name.strip().upper()
    key = _LEVEL_ALIASES.get(key, key)
    try:
        return logging.getLevelNamesMapping()[key]
    except KeyError:
        raise ValueError(f"Unsupported log level: {name!r}") from None


def log_file_for(log_path: Path | None) -> Path:
    """A directory, or a path without a suffix, gets ``integrit_remote.log`` inside it."""

    if log_path is None:
        return Path.cwd() / LOG_FILENAME
    path = log_path.expanduser()
    if not path.is_absolute():
        path = Path.cwd() / path
    if path.suffix and not path.is_dir():
        return path
    return path / LOG_FILENAME
