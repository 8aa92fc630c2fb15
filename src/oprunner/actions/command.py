"""Command actions - Run external commands as operation bodies."""

import os
import shlex
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path

from ..exceptions import CommandFailedError, OperationError


@dataclass
class CommandResult:
    """Result of a finished command."""

    argv: list[str] | str
    returncode: int
    stdout: str
    stderr: str
    duration: float = 0.0

    @property
    def success(self) -> bool:
        return self.returncode == 0

    @property
    def display(self) -> str:
        """Command line as shown in logs."""
        if isinstance(self.argv, str):
            return self.argv
        return shlex.join(self.argv)


def run_command(
    command: list[str] | str,
    cwd: Path | None = None,
    env: dict[str, str] | None = None,
    timeout: float | None = None,
    shell: bool = False,
) -> CommandResult:
    """
    Run a command and capture its output.

    Args:
        command: argv list, or a command line string
        cwd: Working directory
        env: Extra environment variables, merged over the current environment
        timeout: Seconds before the command is killed (None or 0 = no limit)
        shell: Run through the shell. String commands without shell are
            split with shlex

    Returns:
        CommandResult of a command that exited with code 0

    Raises:
        CommandFailedError: If the command exited with a nonzero code
        OperationError: If the command could not be started or timed out
    """
    if isinstance(command, str) and not shell:
        argv: list[str] | str = shlex.split(command)
    else:
        argv = command

    full_env = None
    if env:
        full_env = {**os.environ, **{key: str(value) for key, value in env.items()}}

    start = time.monotonic()
    try:
        completed = subprocess.run(
            argv,
            cwd=cwd,
            env=full_env,
            shell=shell,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout or None,
        )
    except subprocess.TimeoutExpired as e:
        raise OperationError(f"Command timed out after {e.timeout:g}s: {_display(argv)}") from e
    except OSError as e:
        raise OperationError(f"Command could not be started: {_display(argv)} ({e})") from e

    result = CommandResult(
        argv=argv,
        returncode=completed.returncode,
        stdout=completed.stdout or "",
        stderr=completed.stderr or "",
        duration=time.monotonic() - start,
    )

    if not result.success:
        detail = last_line(result.stderr) or last_line(result.stdout)
        message = f"Command exited with code {result.returncode}: {result.display}"
        if detail:
            message = f"{message} ({detail})"
        raise CommandFailedError(message, returncode=result.returncode, stderr=result.stderr)

    return result


def last_line(text: str) -> str:
    """Last non-empty line of command output."""
    for line in reversed(text.splitlines()):
        if line.strip():
            return line.strip()
    return ""


def _display(argv: list[str] | str) -> str:
    return argv if isinstance(argv, str) else shlex.join(argv)
