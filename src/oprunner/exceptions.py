"""Exception hierarchy for oprunner."""

from .constants import OUTCOME_FAILED


class OperationRunnerError(Exception):
    """Base class for all oprunner errors."""


class RunnerStateError(OperationRunnerError):
    """
    Contract violation on an OperationRunner.

    Raised synchronously for programmer errors such as starting a runner
    twice or enqueuing after start. Never part of a run's failure model.
    """


class OperationError(OperationRunnerError):
    """
    Business failure raised from an operation's action or success handler.

    The runner stores ``code`` as the run's last outcome code. Codes must be
    nonzero; zero means success.
    """

    def __init__(self, message: str = "", code: int = OUTCOME_FAILED):
        super().__init__(message)
        if code == 0:
            raise ValueError("OperationError code must be nonzero")
        self.code = code


class OperationValidationError(OperationError):
    """An action returned, but its result did not pass validation."""


class CommandFailedError(OperationError):
    """A command operation exited with a nonzero return code."""

    def __init__(self, message: str, returncode: int, stderr: str = ""):
        super().__init__(message, code=returncode)
        self.returncode = returncode
        self.stderr = stderr


class PlanError(OperationRunnerError):
    """A plan file could not be loaded or failed validation."""
