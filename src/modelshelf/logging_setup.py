"""Logging configuration for the modelshelf CLI and services."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler

from rich.console import Console
from rich.logging import RichHandler

from modelshelf.config.models import LoggingSettings

LOGGER_NAME = "modelshelf"
_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(settings: LoggingSettings, *, console: Console | None = None) -> logging.Logger:
    """Attach console (and optionally rotating file) handlers to the package logger.

    Calling this again replaces the handlers installed by a previous call.

    Args:
        settings: Logging section of the loaded configuration.
        console: Rich console used for log output; stderr by default.

    Returns:
        logging.Logger: The configured ``modelshelf`` logger.
    """
    logger = logging.getLogger(LOGGER_NAME)
    level = logging.getLevelName(settings.level.upper())
    if not isinstance(level, int):
        level = logging.WARNING
    logger.setLevel(level)

    for handler in list(logger.handlers):
        if getattr(handler, "_modelshelf_handler", False):
            logger.removeHandler(handler)
            handler.close()

    console_handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    console_handler.setLevel(level)
    handlers: list[logging.Handler] = [console_handler]

    if settings.file is not None:
        log_path = settings.file.expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=max(1, settings.max_size_mb) * 1024 * 1024,
            backupCount=max(0, settings.backup_count),
            encoding="utf-8",
        )
        file_handler.setFormatter(logging.Formatter(_FILE_FORMAT))
        file_handler.setLevel(level)
        handlers.append(file_handler)

    for handler in handlers:
        handler._modelshelf_handler = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
    return logger


__all__ = ["LOGGER_NAME", "configure_logging"]
