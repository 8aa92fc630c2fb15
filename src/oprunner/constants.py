"""
Centralized constants for oprunner.

Outcome codes and log formats shared by the runner, the context
and the CLI should be defined here.
"""

# RunContext.last_outcome_code values
OUTCOME_SUCCESS = 0
OUTCOME_FAILED = -1  # Default code for any error without its own code
OUTCOME_REJECTED = -2  # Precondition returned False
OUTCOME_CANCELLED = -3  # Cancel requested before the operation started

# Message used when a failure carries no text and no handler produced one
DEFAULT_FAILURE_MESSAGE = "Failed!"

# Log file line format: "{utc timestamp} {LEVEL}: {message}"
LOG_FILE_LINE_FORMAT = "{timestamp} {level}: {message}"

# Plan file extensions
PLAN_EXTENSIONS = {".yaml", ".yml"}

# Default timeout (seconds) for command operations, 0 = no timeout
DEFAULT_COMMAND_TIMEOUT = 0

# CLI exit code for failed runs and invalid plans
EXIT_FAILURE = 1
