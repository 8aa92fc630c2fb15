"""Logging setup for the opr command."""

import logging
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

from .config import LoggingConfig

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
RUN_LOGGER = "oprunner.run"

_installed: list[logging.Handler] = []


def configure_logging(
    config: LoggingConfig,
    logs_dir: Path | None = None,
    verbose: bool = False,
    console: Console | None = None,
) -> list[logging.Handler]:
    """
    Configure the ``oprunner`` logger from config.

    Calling again replaces the handlers installed by the previous call.

    Args:
        config: Logging section of the app config
        logs_dir: Directory for oprunner.log when file logging is enabled
        verbose: Force DEBUG level
        console: Rich console for console output (default: stderr)

    Returns:
        The installed handlers
    """
    root = logging.getLogger("oprunner")
    for handler in _installed:
        root.removeHandler(handler)
        handler.close()
    _installed.clear()

    level = logging.DEBUG if verbose else logging.getLevelName(config.level.upper())
    if not isinstance(level, int):
        level = logging.WARNING
    root.setLevel(level)

    if config.console_logging:
        rich_handler = RichHandler(
            console=console or Console(stderr=True),
            show_path=False,
            markup=False,
        )
        rich_handler.setLevel(level)
        # Run log lines are rendered by the run command itself
        rich_handler.addFilter(lambda record: not record.name.startswith(RUN_LOGGER))
        _installed.append(rich_handler)

    if config.file_logging and logs_dir is not None:
        logs_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(logs_dir / "oprunner.log", encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        file_handler.setLevel(level)
        _installed.append(file_handler)

    for handler in _installed:
        root.addHandler(handler)

    return list(_installed)
