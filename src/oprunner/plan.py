"""
Plan files - YAML definitions of command operation queues.

A plan is a DATA STRUCTURE describing which commands to run and in what
order. build_operations() turns it into Operations; the runner executes
them.

Example plan:

    name: deploy
    description: Provision and configure the environment
    steps:
      - name: Create resource group
        run: ["az", "group", "create", "--name", "rg-demo", "--location", "westus"]
        expect_output: "Succeeded"
      - name: Import solution
        run: ./import.sh solution.zip
        cwd: scripts
        timeout: 600
        requires_env: [CRM_URL]
"""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import TextIO

import yaml

from .actions import CommandResult, last_line, run_command
from .config import AppConfig
from .constants import PLAN_EXTENSIONS
from .exceptions import OperationValidationError, PlanError
from .operations import Operation, ProgressSink, RunContext, previous_succeeded
from .runners import OperationRunner, RunnerCallbacks

STEP_KEYS = {"name", "run", "cwd", "env", "timeout", "shell", "expect_output", "requires_env"}
PLAN_KEYS = {"name", "description", "indeterminate", "steps"}


@dataclass
class PlanStep:
    """One command step of a plan."""

    name: str
    run: list[str] | str
    cwd: Path | None = None
    env: dict[str, str] = field(default_factory=dict)
    timeout: float | None = None  # None = use commands.timeout from config
    shell: bool | None = None  # None = use commands.shell from config
    expect_output: str | None = None  # Regex searched in stdout
    requires_env: list[str] = field(default_factory=list)


@dataclass
class Plan:
    """An ordered list of command steps."""

    name: str
    description: str = ""
    indeterminate: bool | None = None
    steps: list[PlanStep] = field(default_factory=list)
    source: Path | None = None

    def get_step(self, name: str) -> PlanStep | None:
        """Get a step by name."""
        for step in self.steps:
            if step.name == name:
                return step
        return None


def load_plan(path: Path) -> Plan:
    """
    Load and validate a plan file.

    Relative step ``cwd`` values are resolved against the plan's directory.

    Raises:
        PlanError: If the file is missing, unreadable or invalid
    """
    if not path.exists():
        raise PlanError(f"Plan file not found: {path}")
    if path.suffix.lower() not in PLAN_EXTENSIONS:
        raise PlanError(f"Plan file must be .yaml or .yml: {path}")

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise PlanError(f"Invalid YAML in {path}: {e}") from e

    return parse_plan(data, source=path)


def parse_plan(data: object, source: Path | None = None) -> Plan:
    """
    Build a Plan from parsed YAML data.

    Raises:
        PlanError: Describing the first problem found
    """
    where = f" in {source}" if source else ""

    if not isinstance(data, dict):
        raise PlanError(f"Plan must be a mapping{where}")

    unknown = set(data) - PLAN_KEYS
    if unknown:
        raise PlanError(f"Unknown plan keys{where}: {', '.join(sorted(unknown))}")

    raw_steps = data.get("steps")
    if not isinstance(raw_steps, list) or not raw_steps:
        raise PlanError(f"Plan has no steps{where}")

    base_dir = source.parent if source else Path.cwd()
    default_name = source.stem if source else "plan"

    plan = Plan(
        name=str(data.get("name") or default_name),
        description=str(data.get("description") or ""),
        indeterminate=data.get("indeterminate"),
        source=source,
    )

    for idx, raw in enumerate(raw_steps, start=1):
        step = _parse_step(raw, idx, base_dir, where)
        if plan.get_step(step.name) is not None:
            raise PlanError(f"Duplicate step name '{step.name}'{where}")
        plan.steps.append(step)

    return plan


def _parse_step(raw: object, idx: int, base_dir: Path, where: str) -> PlanStep:
    if not isinstance(raw, dict):
        raise PlanError(f"Step {idx} must be a mapping{where}")

    unknown = set(raw) - STEP_KEYS
    if unknown:
        raise PlanError(f"Unknown keys in step {idx}{where}: {', '.join(sorted(unknown))}")

    name = raw.get("name")
    if not isinstance(name, str) or not name.strip():
        raise PlanError(f"Step {idx} needs a name{where}")

    run = raw.get("run")
    if isinstance(run, list):
        if not run or not all(isinstance(arg, (str, int, float)) for arg in run):
            raise PlanError(f"Step '{name}': run must be a non-empty list of arguments{where}")
        run = [str(arg) for arg in run]
    elif not isinstance(run, str) or not run.strip():
        raise PlanError(f"Step '{name}': run must be a command string or argument list{where}")

    cwd = raw.get("cwd")
    if cwd is not None:
        cwd = Path(str(cwd)).expanduser()
        if not cwd.is_absolute():
            cwd = base_dir / cwd

    env = raw.get("env") or {}
    if not isinstance(env, dict):
        raise PlanError(f"Step '{name}': env must be a mapping{where}")
    for key, value in env.items():
        if isinstance(value, bool) or not isinstance(value, (str, int, float)):
            raise PlanError(f"Step '{name}': env value for {key} must be a string or number{where}")

    timeout = raw.get("timeout")
    if timeout is not None and (isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout < 0):
        raise PlanError(f"Step '{name}': timeout must be a non-negative number{where}")

    expect_output = raw.get("expect_output")
    if expect_output is not None:
        try:
            re.compile(str(expect_output))
        except re.error as e:
            raise PlanError(f"Step '{name}': invalid expect_output pattern: {e}{where}") from e
        expect_output = str(expect_output)

    shell = raw.get("shell")
    if shell is not None and not isinstance(shell, bool):
        raise PlanError(f"Step '{name}': shell must be true or false{where}")

    requires_env = raw.get("requires_env") or []
    if isinstance(requires_env, str):
        requires_env = [requires_env]
    if not isinstance(requires_env, list) or not all(isinstance(var, str) and var.strip() for var in requires_env):
        raise PlanError(f"Step '{name}': requires_env must be a list of variable names{where}")

    return PlanStep(
        name=name.strip(),
        run=run,
        cwd=cwd,
        env={str(k): str(v) for k, v in env.items()},
        timeout=timeout,
        shell=shell,
        expect_output=expect_output,
        requires_env=[var.strip() for var in requires_env],
    )


def build_operation(step: PlanStep, config: AppConfig | None = None) -> Operation:
    """
    Create the Operation for one plan step.

    The action runs the command and forwards its output to the run log,
    the success handler checks ``expect_output``, and the precondition
    requires the previous step to have succeeded and every variable in
    ``requires_env`` to be set.
    """
    commands = (config or AppConfig()).commands
    timeout = step.timeout if step.timeout is not None else commands.timeout
    shell = isinstance(step.run, str) and (step.shell if step.shell is not None else commands.shell)
    pattern = re.compile(step.expect_output) if step.expect_output else None

    def precondition(context: RunContext) -> bool:
        if not previous_succeeded(context):
            return False
        missing = [var for var in step.requires_env if not os.environ.get(var)]
        if missing:
            context.logger.warning(f"{step.name} requires unset environment variables: {', '.join(missing)}")
            return False
        return True

    def action(context: RunContext) -> CommandResult:
        result = run_command(step.run, cwd=step.cwd, env=step.env, timeout=timeout, shell=shell)
        context.logger.info(f"$ {result.display} ({result.duration:.1f}s)")
        for line in result.stdout.splitlines():
            if line.strip():
                context.logger.info(line)
        for line in result.stderr.splitlines():
            if line.strip():
                context.logger.warning(line)
        return result

    def on_success(result: CommandResult) -> None:
        if pattern is not None and not pattern.search(result.stdout):
            got = last_line(result.stdout) or "no output"
            raise OperationValidationError(f"Output did not match '{pattern.pattern}' (got: {got})")

    def on_failure(error: BaseException) -> str:
        return f"{step.name} failed: {error}"

    return Operation(
        name=step.name,
        action=action,
        precondition=precondition,
        on_success=on_success,
        on_failure=on_failure,
    )


def build_operations(plan: Plan, config: AppConfig | None = None) -> list[Operation]:
    """Create Operations for every step of a plan, in order."""
    return [build_operation(step, config) for step in plan.steps]


def create_plan_runner(
    plan: Plan,
    config: AppConfig | None = None,
    progress: ProgressSink | None = None,
    callbacks: RunnerCallbacks | None = None,
    log_file: TextIO | None = None,
) -> OperationRunner:
    """
    Create a runner with every step of a plan enqueued.

    This is a FACTORY function: the runner is returned idle, ready for
    start() or run().

    Args:
        plan: Loaded plan
        config: App config (command defaults, indeterminate default)
        progress: Optional progress sink
        callbacks: Optional observer
        log_file: Optional text stream for the run log

    Returns:
        OperationRunner with the plan's operations queued
    """
    config = config or AppConfig()
    indeterminate = plan.indeterminate if plan.indeterminate is not None else config.runner.indeterminate

    runner = OperationRunner(
        name=plan.name,
        progress=progress,
        callbacks=callbacks,
        indeterminate=bool(indeterminate),
        log_file=log_file,
    )
    runner.extend(build_operations(plan, config))
    return runner
