"""Logging configuration tests."""

from __future__ import annotations

import io
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

from modelshelf.config.models import LoggingSettings
from modelshelf.logging_setup import configure_logging


def _installed(logger: logging.Logger) -> list[logging.Handler]:
    return [handler for handler in logger.handlers if getattr(handler, "_modelshelf_handler", False)]


def test_file_logging_writes_rotating_log(tmp_path: Path) -> None:
    log_file = tmp_path / "logs" / "modelshelf.log"
    console = Console(file=io.StringIO())

    logger = configure_logging(LoggingSettings(level="info", file=log_file), console=console)
    try:
        logging.getLogger("modelshelf.sync.derivation").info("derived %d collections", 3)
        for handler in logger.handlers:
            handler.flush()

        assert logger.level == logging.INFO
        assert {type(handler) for handler in _installed(logger)} == {RichHandler, RotatingFileHandler}
        assert "derived 3 collections" in log_file.read_text(encoding="utf-8")
        assert "derived 3 collections" in console.file.getvalue()
    finally:
        configure_logging(LoggingSettings(), console=Console(file=io.StringIO()))


def test_reconfiguring_replaces_previous_handlers() -> None:
    first = configure_logging(LoggingSettings(), console=Console(file=io.StringIO()))
    second = configure_logging(LoggingSettings(level="bogus"), console=Console(file=io.StringIO()))

    assert first is second
    assert len(_installed(second)) == 1
    assert second.level == logging.WARNING
