"""
Operations layer - Operation, status and context definitions.

Operations are DATA plus supplied behavior.
They do NOT decide when they run - that's the runner's job.
"""

from .context import LogEvent, LogLevel, RunContext, RunLogger
from .operation import Operation, OperationState, OperationStatus, previous_succeeded
from .progress import OperationsProgress, ProgressSink

__all__ = [
    "LogEvent",
    "LogLevel",
    "Operation",
    "OperationState",
    "OperationStatus",
    "OperationsProgress",
    "ProgressSink",
    "RunContext",
    "RunLogger",
    "previous_succeeded",
]
