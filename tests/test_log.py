"""Tests for logging setup."""

import logging

import pytest
from rich.console import Console
from rich.logging import RichHandler

from oprunner.config import LoggingConfig
from oprunner.log import configure_logging


@pytest.fixture
def reset_logging():
    """Remove installed handlers after the test."""
    yield
    configure_logging(LoggingConfig(console_logging=False))
    logging.getLogger("oprunner").setLevel(logging.NOTSET)


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_console_handler(self, reset_logging):
        """Test a Rich handler is installed at the configured level."""
        handlers = configure_logging(LoggingConfig(level="INFO"))

        assert len(handlers) == 1
        assert isinstance(handlers[0], RichHandler)
        assert logging.getLogger("oprunner").level == logging.INFO

    def test_file_handler(self, tmp_path, reset_logging):
        """Test file logging writes oprunner.log."""
        config = LoggingConfig(level="INFO", file_logging=True, console_logging=False)
        handlers = configure_logging(config, logs_dir=tmp_path / "logs")

        logging.getLogger("oprunner.test").info("hello file")
        for handler in handlers:
            handler.flush()

        assert "hello file" in (tmp_path / "logs" / "oprunner.log").read_text()

    def test_verbose_forces_debug(self, reset_logging):
        """Test verbose sets DEBUG."""
        configure_logging(LoggingConfig(level="ERROR"), verbose=True)
        assert logging.getLogger("oprunner").level == logging.DEBUG

    def test_invalid_level(self, reset_logging):
        """Test an unknown level falls back to WARNING."""
        configure_logging(LoggingConfig(level="LOUD"))
        assert logging.getLogger("oprunner").level == logging.WARNING

    def test_reconfigure_replaces_handlers(self, reset_logging):
        """Test calling again does not stack handlers."""
        first = configure_logging(LoggingConfig())
        second = configure_logging(LoggingConfig())

        installed = logging.getLogger("oprunner").handlers
        assert first[0] not in installed
        assert second[0] in installed

    def test_run_lines_not_echoed(self, reset_logging):
        """Test run log lines are left to the run command's own output."""
        console = Console(record=True, width=120)
        configure_logging(LoggingConfig(level="INFO"), console=console)

        logging.getLogger("oprunner.run").warning("run line")
        logging.getLogger("oprunner.plan").warning("library line")

        text = console.export_text()
        assert "run line" not in text
        assert "library line" in text
