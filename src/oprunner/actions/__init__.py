"""
Actions layer - Pure Python functions usable as operation bodies.

All functions are CLI-agnostic, return typed results and raise
OperationError subclasses on failure, which the runner routes to the
operation's failure handler.
"""

from .command import CommandResult, last_line, run_command

__all__ = [
    "CommandResult",
    "last_line",
    "run_command",
]
