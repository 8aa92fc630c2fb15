"""Operation and status definitions."""

import uuid
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .context import RunContext


class OperationState(Enum):
    """Lifecycle state of an operation within a run."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def label(self) -> str:
        """Friendly text for display."""
        return _STATE_LABELS[self]

    @property
    def is_terminal(self) -> bool:
        return self in (OperationState.COMPLETED, OperationState.FAILED, OperationState.SKIPPED)


_STATE_LABELS = {
    OperationState.NOT_STARTED: "Not Started",
    OperationState.IN_PROGRESS: "In Progress",
    OperationState.COMPLETED: "Completed",
    OperationState.FAILED: "Failed",
    OperationState.SKIPPED: "Skipped",
}


def previous_succeeded(context: "RunContext") -> bool:
    """Default precondition: run only if the previous operation succeeded."""
    return context.last_outcome_code == 0


def _new_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class OperationStatus:
    """
    Progress record for one operation.

    Statuses are values: an update replaces the record in the progress
    sink, so observers never see a status change under them.
    """

    id: str
    name: str
    state: OperationState = OperationState.NOT_STARTED

    @property
    def label(self) -> str:
        return self.state.label

    @property
    def in_progress(self) -> bool:
        return self.state == OperationState.IN_PROGRESS

    def with_state(self, state: OperationState) -> "OperationStatus":
        """Return a copy of this status in a new state."""
        return replace(self, state=state)


@dataclass(eq=False)
class Operation:
    """
    A named step in a sequential run.

    Operations are data plus supplied behavior - the runner is the only
    component that calls them, always in the order
    precondition -> action -> (on_success | on_failure).
    """

    name: str
    # Performs the step; may block and may raise
    action: Callable[["RunContext"], Any]
    # Gate evaluated right before action; False stops the run here
    precondition: Callable[["RunContext"], bool] = previous_succeeded
    # Folds the action's result into caller state; raising fails the step
    on_success: Callable[[Any], None] | None = None
    # Produces the user-facing message for a failure; must not raise
    on_failure: Callable[[BaseException], str | None] | None = None
    id: str = field(default_factory=_new_id)

    def status(self, state: OperationState = OperationState.NOT_STARTED) -> OperationStatus:
        """Build a status record for this operation."""
        return OperationStatus(id=self.id, name=self.name, state=state)
