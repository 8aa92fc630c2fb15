"""
Runners layer - Execution engines for operation queues.

Runners own a queue of operations and execute it, handling gating,
failure handling and progress reporting. Dispatchers deliver runner
events to observers on their own thread or event loop.
"""

from .base import RunnerCallbacks, RunnerProtocol, RunnerResult, RunProgress, RunState
from .dispatch import AsyncioDispatcher, QueueDispatcher
from .sequential import OperationRunner, outcome_code_for

__all__ = [
    "AsyncioDispatcher",
    "OperationRunner",
    "QueueDispatcher",
    "RunProgress",
    "RunState",
    "RunnerCallbacks",
    "RunnerProtocol",
    "RunnerResult",
    "outcome_code_for",
]
