"""Progress sinks - Passive targets for operation status updates."""

import threading
from typing import Protocol

from .operation import OperationState, OperationStatus


class ProgressSink(Protocol):
    """Protocol for status targets written to by a runner."""

    def publish(self, status: OperationStatus) -> None:
        """Add a status, or replace the one with the same id."""
        ...

    def snapshot(self) -> list[OperationStatus]:
        """Return the current ordered statuses."""
        ...

    def clear(self) -> None:
        """Remove all statuses."""
        ...


class OperationsProgress:
    """
    Default progress sink: an ordered, replace-on-change status list.

    Safe to read from any thread while a run writes to it.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._operations: list[OperationStatus] = []
        self._current: OperationStatus | None = None

    def publish(self, status: OperationStatus) -> None:
        with self._lock:
            for idx, existing in enumerate(self._operations):
                if existing.id == status.id:
                    self._operations[idx] = status
                    break
            else:
                self._operations.append(status)

            if status.state == OperationState.IN_PROGRESS:
                self._current = status
            elif self._current is not None and self._current.id == status.id:
                self._current = status

    def snapshot(self) -> list[OperationStatus]:
        with self._lock:
            return list(self._operations)

    def clear(self) -> None:
        with self._lock:
            self._operations = []
            self._current = None

    @property
    def current_operation(self) -> OperationStatus | None:
        """The most recently started operation's latest status."""
        with self._lock:
            return self._current

    def get(self, operation_id: str) -> OperationStatus | None:
        """Get a status by operation id."""
        with self._lock:
            for status in self._operations:
                if status.id == operation_id:
                    return status
        return None

    def count(self, state: OperationState) -> int:
        """Count statuses in a given state."""
        with self._lock:
            return sum(1 for s in self._operations if s.state == state)

    def __len__(self) -> int:
        with self._lock:
            return len(self._operations)
