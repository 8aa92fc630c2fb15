"""Base runner classes and protocols."""

from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Protocol

from ..operations import LogEvent, OperationStatus


class RunState(Enum):
    """Lifecycle of a runner. Terminal states are final until reset."""

    IDLE = "idle"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RunState.SUCCEEDED, RunState.FAILED)


@dataclass
class RunnerResult:
    """Result of running an operation queue."""

    success: bool
    runner_name: str
    total: int = 0
    completed: int = 0
    failed: int = 0
    skipped: int = 0
    last_outcome_code: int = 0
    cancelled: bool = False
    started_at: datetime | None = None
    finished_at: datetime | None = None
    errors: list[str] = field(default_factory=list)

    @property
    def duration_seconds(self) -> float:
        """Wall time of the run."""
        if self.started_at is None or self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()

    def copy(self) -> "RunnerResult":
        """Return a copy that shares no mutable state with this result."""
        return replace(self, errors=list(self.errors))


@dataclass(frozen=True)
class RunProgress:
    """Overall progress of a run, as shown by a progress bar."""

    message: str
    completed: int
    total: int
    indeterminate: bool = False
    current_operation: str | None = None

    @property
    def fraction(self) -> float | None:
        """Completed fraction, or None when progress is indeterminate."""
        if self.indeterminate:
            return None
        if self.total == 0:
            return 1.0
        return self.completed / self.total


@dataclass
class RunnerCallbacks:
    """
    Callbacks for runner progress reporting.

    Allows a CLI or UI to display progress without coupling the runner to it.
    All callbacks are optional - if None, no callback is made.
    Callbacks run on the runner's thread; see ``runners.dispatch`` to
    deliver them elsewhere.
    """

    # Run lifecycle
    on_run_start: Callable[[str, int], None] | None = None  # runner name, total operations
    on_complete: Callable[[RunnerResult], None] | None = None

    # Operation status changes, in order
    on_status: Callable[[OperationStatus], None] | None = None

    # Log stream
    on_log: Callable[[LogEvent], None] | None = None

    # Overall progress (called when an operation starts and when the run ends)
    on_progress: Callable[[RunProgress], None] | None = None


class RunnerProtocol(Protocol):
    """Protocol for operation runners."""

    def start(self) -> None:
        """Begin executing queued operations without blocking the caller."""
        ...

    def snapshot(self) -> list[OperationStatus]:
        """Return the current ordered operation statuses."""
        ...

    def wait(self, timeout: float | None = None) -> RunnerResult | None:
        """
        Wait for the run to finish.

        Args:
            timeout: Seconds to wait, None to wait indefinitely

        Returns:
            RunnerResult, or None if the run has not finished
        """
        ...
