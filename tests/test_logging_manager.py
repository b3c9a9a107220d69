"""Tests for archsetup.logging."""

from __future__ import annotations

import io
import logging
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

from archsetup.logging import LOGGER_NAME, SUCCESS_LEVEL, configure_logging, log_success


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_rich_console_handler(self) -> None:
        """The console handler is a RichHandler at the requested level."""
        logger = configure_logging("warning", console=Console(file=io.StringIO()))
        assert logger.name == LOGGER_NAME
        assert logger.propagate is False
        (handler,) = logger.handlers
        assert isinstance(handler, RichHandler)
        assert handler.level == logging.WARNING

    def test_reconfigure_replaces_handlers(self) -> None:
        """Calling twice does not duplicate handlers."""
        configure_logging("INFO", console=Console(file=io.StringIO()))
        logger = configure_logging("DEBUG", console=Console(file=io.StringIO()))
        assert len(logger.handlers) == 1

    def test_file_handler(self, tmp_path: Path) -> None:
        """A log file gets every record down to DEBUG."""
        path = tmp_path / "logs" / "archsetup.log"
        configure_logging("ERROR", log_file=path, console=Console(file=io.StringIO()))

        logging.getLogger("archsetup.provision.steps").debug("Wrote %s", "/etc/mkinitcpio.conf")
        for handler in logging.getLogger(LOGGER_NAME).handlers:
            handler.flush()

        text = path.read_text(encoding="utf-8")
        assert "DEBUG" in text
        assert "archsetup.provision.steps: Wrote /etc/mkinitcpio.conf" in text

    def test_console_output(self) -> None:
        """Records above the level reach the console."""
        buffer = io.StringIO()
        configure_logging("INFO", console=Console(file=buffer, width=200))
        logging.getLogger("archsetup.cli").warning("Interrupted by operator")
        assert "Interrupted by operator" in buffer.getvalue()


class TestSuccessLevel:
    """Tests for the SUCCESS level."""

    def test_level_name(self) -> None:
        """SUCCESS sits between INFO and WARNING."""
        assert logging.INFO < SUCCESS_LEVEL < logging.WARNING
        assert logging.getLevelName(SUCCESS_LEVEL) == "SUCCESS"

    def test_log_success(self) -> None:
        """log_success emits at the SUCCESS level."""
        buffer = io.StringIO()
        logger = configure_logging("INFO", console=Console(file=buffer, width=200))
        log_success(logger, "Install complete")
        assert "SUCCESS" in buffer.getvalue()
        assert "Install complete" in buffer.getvalue()

