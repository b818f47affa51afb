"""Logging configuration for linkimport processes."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

from linkimport.config.models import LoggingSettings

_FILE_FORMAT = "%(asctime)s %(levelname)s [%(threadName)s] %(name)s: %(message)s"
_HANDLER_MARKER = "_linkimport_handler"


def configure_logging(
    settings: LoggingSettings,
    *,
    log_dir: Path | None = None,
    level_override: str | None = None,
    console: Console | None = None,
    console_output: bool = True,
) -> logging.Logger:
    """Attach console and rotating file handlers to the ``linkimport`` logger.

    Calling this again replaces handlers installed by a previous call.

    Args:
        settings: Logging configuration section.
        log_dir: Directory receiving the rotating log file; skipped when ``None``.
        level_override: Level name that takes precedence over ``settings.level``.
        console: Rich console used for terminal output; stderr by default.
        console_output: Whether to log to the terminal at all.

    Returns:
        logging.Logger: The configured package logger.
    """
    logger = logging.getLogger("linkimport")
    level_name = (level_override or settings.level).upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.INFO
    logger.setLevel(level)

    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_MARKER, False):
            logger.removeHandler(handler)
            handler.close()

    if console_output:
        console_handler = RichHandler(
            console=console or Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
        )
        console_handler.setLevel(level)
        setattr(console_handler, _HANDLER_MARKER, True)
        logger.addHandler(console_handler)

    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_dir / settings.file_name,
            maxBytes=max(1, settings.max_size_mb) * 1024 * 1024,
            backupCount=max(0, settings.backup_count),
            encoding="utf-8",
        )
        file_handler.setFormatter(logging.Formatter(_FILE_FORMAT))
        file_handler.setLevel(level)
        setattr(file_handler, _HANDLER_MARKER, True)
        logger.addHandler(file_handler)

    logger.propagate = False
    return logger


__all__ = ["configure_logging"]
