"""Tests for logging configuration."""

from __future__ import annotations

import io
import logging
from pathlib import Path

from rich.console import Console

from linkimport.config.models import LoggingSettings
from linkimport.logging_setup import configure_logging


def test_configure_logging_writes_console_and_file(tmp_path: Path) -> None:
    buffer = io.StringIO()
    logger = configure_logging(
        LoggingSettings(level="INFO"),
        log_dir=tmp_path,
        console=Console(file=buffer, width=200),
    )

    logging.getLogger("linkimport.ingestion.pipeline").info("hello from the importer")
    logging.getLogger("linkimport.ingestion.pipeline").debug("hidden detail")
    for handler in logger.handlers:
        handler.flush()

    assert "hello from the importer" in buffer.getvalue()
    log_text = (tmp_path / "linkimport.log").read_text(encoding="utf-8")
    assert "hello from the importer" in log_text
    assert "hidden detail" not in log_text
    assert logger.propagate is False


def test_configure_logging_replaces_previous_handlers(tmp_path: Path) -> None:
    settings = LoggingSettings()
    configure_logging(settings, log_dir=tmp_path)
    logger = configure_logging(settings, level_override="debug", console_output=False)

    assert logger.level == logging.DEBUG
    assert not [h for h in logger.handlers if getattr(h, "_linkimport_handler", False)]
