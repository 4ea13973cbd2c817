"""Tests for logging configuration."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

import pytest

from integrit_remote.logging import configure_logging


@pytest.fixture
def reset_logger():
    yield
    logger = logging.getLogger("integrit_remote")
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


def test_defaults_write_to_working_directory(tmp_path, monkeypatch, reset_logger):
    monkeypatch.chdir(tmp_path)

    logger = configure_logging()

    (handler,) = logger.handlers
    assert isinstance(handler, RotatingFileHandler)
    assert Path(handler.baseFilename) == tmp_path / "integrit_remote.log"
    assert logger.level == logging.INFO
    assert logger.propagate is False
    logger.info("staged web1")
    handler.flush()
    assert "staged web1" in (tmp_path / "integrit_remote.log").read_text(encoding="utf-8")


@pytest.mark.parametrize(
    "provided,expected",
    [
        (Path("custom.log"), "custom.log"),
        (Path("logs"), "logs/integrit_remote.log"),
    ],
)
def test_log_path_override(tmp_path, monkeypatch, reset_logger, provided, expected):
    monkeypatch.chdir(tmp_path)

    logger = configure_logging(log_path=provided, level="debug")

    (handler,) = logger.handlers
    assert Path(handler.baseFilename) == tmp_path / expected
    assert logger.level == logging.DEBUG


def test_reconfiguring_replaces_handlers(tmp_path, monkeypatch, reset_logger):
    monkeypatch.chdir(tmp_path)
    configure_logging(log_path=Path("first.log"))

    logger = configure_logging(log_path=Path("second.log"), level="warn")

    (handler,) = logger.handlers
    assert Path(handler.baseFilename).name == "second.log"
    assert logger.level == logging.WARNING


def test_echo_never_drops_below_file_level(tmp_path, monkeypatch, reset_logger):
    monkeypatch.chdir(tmp_path)

    logger = configure_logging(level="warn", echo_level="debug")

    echo = next(h for h in logger.handlers if not isinstance(h, RotatingFileHandler))
    assert echo.level == logging.WARNING


def test_unknown_level_is_rejected(tmp_path, monkeypatch, reset_logger):
    monkeypatch.chdir(tmp_path)

    with pytest.raises(ValueError, match="Unsupported log level"):
        configure_logging(level="chatty")

    assert not (tmp_path / "integrit_remote.log").exists()


def test_unusable_log_location_raises_oserror(tmp_path, reset_logger):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("", encoding="utf-8")

    with pytest.raises(OSError):
        configure_logging(log_path=blocker / "sub" / "run.log")
