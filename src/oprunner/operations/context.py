"""
Run context - State shared by every operation of one run.

The context is created by the runner when a run starts and handed to
each operation by reference, one operation at a time.
"""

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TextIO

from ..constants import LOG_FILE_LINE_FORMAT, OUTCOME_SUCCESS

logger = logging.getLogger(__name__)
run_log = logging.getLogger("oprunner.run")


class LogLevel(Enum):
    """Levels of run log lines."""

    INFORMATIONAL = "informational"
    WARNING = "warning"
    ERROR = "error"

    @property
    def file_label(self) -> str:
        """Label written to run log files."""
        return _FILE_LABELS[self]

    @property
    def logging_level(self) -> int:
        """Equivalent stdlib logging level."""
        return _LOGGING_LEVELS[self]


_FILE_LABELS = {
    LogLevel.INFORMATIONAL: "INFORMATION",
    LogLevel.WARNING: "WARNING",
    LogLevel.ERROR: "ERROR",
}

_LOGGING_LEVELS = {
    LogLevel.INFORMATIONAL: logging.INFO,
    LogLevel.WARNING: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}


@dataclass(frozen=True)
class LogEvent:
    """One line of a run's log stream."""

    operation_name: str | None  # None for run-level lines
    level: LogLevel
    message: str
    timestamp: datetime


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RunLogger:
    """
    Logger handed to operations through the run context.

    Every line goes to the run's log stream, to the ``oprunner.run``
    logger and, if one is attached, to a text log file.
    """

    def __init__(
        self,
        emit: Callable[[LogLevel, str], None] | None = None,
        log_file: TextIO | None = None,
    ):
        """
        Initialize the logger.

        Args:
            emit: Callback receiving (level, message), normally the runner's
                log stream publisher
            log_file: Optional text stream to append log lines to
        """
        self._emit = emit
        self._log_file = log_file

    def info(self, message: str) -> None:
        self.log(LogLevel.INFORMATIONAL, message)

    def warning(self, message: str) -> None:
        self.log(LogLevel.WARNING, message)

    def error(self, message: str) -> None:
        self.log(LogLevel.ERROR, message)

    def log(self, level: LogLevel, message: str) -> None:
        """Write a line at the given level."""
        run_log.log(level.logging_level, message)

        if self._emit is not None:
            self._emit(level, message)

        if self._log_file is not None:
            line = LOG_FILE_LINE_FORMAT.format(
                timestamp=utc_now().isoformat(timespec="seconds"),
                level=level.file_label,
                message=message,
            )
            try:
                self._log_file.write(line + "\n")
                self._log_file.flush()
            except (OSError, ValueError):
                logger.exception("Could not write run log line to log file")


@dataclass
class RunContext:
    """
    Mutable state threaded through all operations of a run.

    Operations must not keep a reference to the context after their
    own invocation returns.
    """

    logger: RunLogger = field(default_factory=RunLogger)
    # 0 = previous operation succeeded; nonzero = code of the latest failure
    last_outcome_code: int = OUTCOME_SUCCESS
    # Outcome code per operation id, for preconditions that need more than the last one
    outcomes: dict[str, int] = field(default_factory=dict)
    cancel_event: threading.Event = field(default_factory=threading.Event)

    @property
    def cancel_requested(self) -> bool:
        """True once cancellation of the run was requested."""
        return self.cancel_event.is_set()

    def record(self, operation_id: str, code: int) -> None:
        """Record an operation's outcome and make it the last outcome."""
        self.outcomes[operation_id] = code
        self.last_outcome_code = code

    def outcome_of(self, operation_id: str) -> int | None:
        """Outcome code of an earlier operation, or None if it did not run."""
        return self.outcomes.get(operation_id)

    def succeeded(self, operation_id: str) -> bool:
        """Check whether an earlier operation completed successfully."""
        return self.outcomes.get(operation_id) == OUTCOME_SUCCESS
