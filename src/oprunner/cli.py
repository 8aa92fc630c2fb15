"""
CLI module - Command line interface for oprunner

Entry point for the `opr` command using Typer.
"""

from contextlib import ExitStack
from datetime import datetime
from pathlib import Path
from typing import Annotated

import typer
import yaml
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import __version__
from .config import AppConfig, load_config
from .constants import EXIT_FAILURE
from .exceptions import PlanError
from .log import configure_logging
from .operations import LogEvent, LogLevel, OperationState, OperationStatus
from .plan import Plan, create_plan_runner, load_plan
from .runners import QueueDispatcher, RunnerCallbacks, RunnerResult

console = Console()
app = typer.Typer(
    name="opr",
    help="oprunner - Run sequential operation plans with fail-fast gating.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

STATE_STYLES = {
    OperationState.NOT_STARTED: "dim",
    OperationState.IN_PROGRESS: "cyan",
    OperationState.COMPLETED: "green",
    OperationState.FAILED: "red",
    OperationState.SKIPPED: "yellow",
}


def version_callback(value: bool):
    if value:
        console.print(f"opr version {__version__}")
        raise typer.Exit()


# Type aliases for common options
ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", "-c", help="Path to config file", exists=True, dir_okay=False),
]

PlanArgument = Annotated[
    Path,
    typer.Argument(help="Plan file (YAML)", exists=True, dir_okay=False),
]


def get_config(config_path: Path | None = None) -> AppConfig:
    """Load configuration."""
    return load_config(config_path)


def _load_plan_or_exit(path: Path) -> Plan:
    try:
        return load_plan(path)
    except PlanError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(EXIT_FAILURE) from e


def _command_text(run: list[str] | str) -> str:
    return run if isinstance(run, str) else " ".join(run)


@app.callback()
def main(
    version: Annotated[
        bool, typer.Option("--version", "-v", callback=version_callback, is_eager=True, help="Show version")
    ] = False,
):
    """oprunner - Run sequential operation plans with fail-fast gating."""
    pass


@app.command()
def validate(plan_path: PlanArgument):
    """
    Validate a plan file and list its steps.

    [bold]Example:[/bold]

        opr validate deploy.yaml
    """
    plan = _load_plan_or_exit(plan_path)

    table = Table(title=f"Plan: {plan.name}")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Step", style="cyan")
    table.add_column("Command")
    table.add_column("Timeout", justify="right")
    table.add_column("Expects")

    for idx, step in enumerate(plan.steps, start=1):
        table.add_row(
            str(idx),
            escape(step.name),
            escape(_command_text(step.run)),
            f"{step.timeout:g}s" if step.timeout else "-",
            escape(step.expect_output or "-"),
        )

    if plan.description:
        console.print(f"[dim]{escape(plan.description)}[/dim]")
    console.print(table)
    console.print(f"[green]✓[/green] {len(plan.steps)} steps OK")


@app.command()
def run(
    plan_path: PlanArgument,
    log_file: Annotated[Path | None, typer.Option("--log-file", "-l", help="Append the run log to this file")] = None,
    indeterminate: Annotated[
        bool, typer.Option("--indeterminate", help="Show a spinner instead of step counts")
    ] = False,
    verbose: Annotated[bool, typer.Option("--verbose", help="Show command output and debug logs")] = False,
    config: ConfigOption = None,
):
    """
    Run a plan, one step at a time, stopping at the first failure.

    [bold]Examples:[/bold]

        opr run deploy.yaml

        opr run deploy.yaml --log-file deploy.log --verbose
    """
    cfg = get_config(config)
    configure_logging(cfg.logging, cfg.paths.logs_dir, verbose=verbose)
    plan = _load_plan_or_exit(plan_path)

    if indeterminate:
        plan.indeterminate = True

    if log_file is None and cfg.runner.write_log_file and cfg.paths.logs_dir is not None:
        stamp = datetime.now().strftime("%Y%m%d-%H%M%S")
        log_file = cfg.paths.logs_dir / f"{plan.name}-{stamp}.log"

    total = len(plan.steps)
    position: dict[str, int] = {}

    def on_run_start(name: str, count: int):
        console.print(f"\n[bold]Running:[/bold] {escape(name)} ({count} steps)")
        if plan.description:
            console.print(f"  [dim]{escape(plan.description)}[/dim]")
        console.print()

    def on_status(status: OperationStatus):
        name = escape(status.name)
        if status.state == OperationState.IN_PROGRESS:
            position[status.id] = len(position) + 1
            console.print(f"  [{position[status.id]}/{total}] {name}...")
        elif status.state == OperationState.COMPLETED:
            console.print(f"  [green]✓[/green] {name}")
        elif status.state == OperationState.FAILED:
            console.print(f"  [red]✗[/red] {name}")
        elif status.state == OperationState.SKIPPED:
            console.print(f"  [yellow]-[/yellow] [dim]{name} (skipped)[/dim]")

    def on_log(event: LogEvent):
        message = escape(event.message)
        if event.level == LogLevel.ERROR:
            console.print(f"    [red]{message}[/red]")
        elif event.level == LogLevel.WARNING:
            console.print(f"    [yellow]{message}[/yellow]")
        elif verbose:
            console.print(f"    [dim]{message}[/dim]")

    dispatcher = QueueDispatcher(
        RunnerCallbacks(
            on_run_start=on_run_start,
            on_status=on_status,
            on_log=on_log,
        )
    )

    with ExitStack() as stack:
        stream = None
        if log_file is not None:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            stream = stack.enter_context(open(log_file, "a", encoding="utf-8"))

        runner = create_plan_runner(plan, cfg, callbacks=dispatcher.callbacks, log_file=stream)
        runner.start()

        if runner.indeterminate:
            with console.status(f"Running {escape(plan.name)}..."):
                result = dispatcher.drain_until_complete()
        else:
            result = dispatcher.drain_until_complete()

    _print_summary(runner.snapshot(), result)
    if log_file is not None:
        console.print(f"[dim]Log: {log_file}[/dim]")

    if not result.success:
        raise typer.Exit(EXIT_FAILURE)


def _print_summary(statuses: list[OperationStatus], result: RunnerResult):
    table = Table(title="Operations")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Operation")
    table.add_column("Status")

    for idx, status in enumerate(statuses, start=1):
        style = STATE_STYLES[status.state]
        table.add_row(str(idx), escape(status.name), f"[{style}]{status.label}[/{style}]")

    console.print()
    console.print(table)

    if result.success:
        console.print(
            f"[green]✓[/green] {result.completed}/{result.total} operations completed"
            f" in {result.duration_seconds:.1f}s"
        )
        return

    if result.cancelled:
        console.print("[yellow]Run cancelled[/yellow]")
    for error in result.errors:
        console.print(f"[red]✗[/red] {escape(error)}")
    console.print(
        f"[red]Run failed:[/red] {result.completed} completed, {result.failed} failed, {result.skipped} skipped"
    )


@app.command("show-config")
def show_config(config: ConfigOption = None):
    """Show the effective configuration as YAML."""
    cfg = get_config(config)
    console.print(yaml.safe_dump(cfg.to_dict(), sort_keys=False), markup=False, highlight=False)


if __name__ == "__main__":
    app()
