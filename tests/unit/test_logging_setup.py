"""Tests for logging configuration."""

from __future__ import annotations

import logging

import pytest
from rich.logging import RichHandler

from chanindex.config import LoggingCfg
from chanindex.logging_setup import setup_logging


@pytest.fixture(autouse=True)
def _restore_root():
    root = logging.getLogger()
    level = root.level
    yield
    for handler in root.handlers[:]:
        if isinstance(handler, (RichHandler, logging.FileHandler)):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


def test_console_handler_uses_rich():
    logger = setup_logging(LoggingCfg(level="WARNING"))
    root = logging.getLogger()
    assert logger.name == "chanindex"
    assert any(isinstance(h, RichHandler) for h in root.handlers)
    assert root.level == logging.WARNING


def test_verbose_forces_debug():
    setup_logging(LoggingCfg(level="ERROR"), verbose=True)
    assert logging.getLogger().level == logging.DEBUG


def test_file_handler_writes_debug(tmp_path):
    log_file = tmp_path / "logs" / "chanindex.log"
    setup_logging(LoggingCfg(level="WARNING", file=str(log_file)))

    logging.getLogger("chanindex.test").debug("traced %d", 7)
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert "traced 7" in log_file.read_text(encoding="utf-8")
    console = next(h for h in logging.getLogger().handlers if isinstance(h, RichHandler))
    assert console.level == logging.WARNING
