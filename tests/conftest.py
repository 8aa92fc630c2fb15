"""Shared pytest fixtures for oprunner tests."""

import sys

import pytest
import yaml
from typer.testing import CliRunner

from oprunner.operations import Operation
from oprunner.runners import RunnerCallbacks


class EventRecorder:
    """Collects every runner event, in order."""

    def __init__(self):
        self.events = []
        self.statuses = []
        self.logs = []
        self.progress = []
        self.completions = []
        self.starts = []
        self.callbacks = RunnerCallbacks(
            on_run_start=self._on_run_start,
            on_status=self._on_status,
            on_log=self._on_log,
            on_progress=self._on_progress,
            on_complete=self._on_complete,
        )

    def _on_run_start(self, name, total):
        self.starts.append((name, total))
        self.events.append(("start", name))

    def _on_status(self, status):
        self.statuses.append(status)
        self.events.append(("status", status.name, status.state))

    def _on_log(self, event):
        self.logs.append(event)
        self.events.append(("log", event.operation_name, event.message))

    def _on_progress(self, progress):
        self.progress.append(progress)

    def _on_complete(self, result):
        self.completions.append(result)
        self.events.append(("complete", result.success))

    def transitions(self):
        """(name, state) pairs of every status event."""
        return [(s.name, s.state) for s in self.statuses]


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path, monkeypatch):
    """Keep tests away from user config and log directories."""
    monkeypatch.setenv("OPR_CONFIG_DIR", str(tmp_path / "opr-config"))
    monkeypatch.setenv("OPR_LOG_DIR", str(tmp_path / "opr-logs"))


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    return CliRunner()


@pytest.fixture
def recorder():
    """Runner event recorder."""
    return EventRecorder()


@pytest.fixture
def calls():
    """Names of operations whose action ran, in order."""
    return []


@pytest.fixture
def make_operation(calls):
    """Factory for operations that record their action calls."""

    def factory(name, result=None, error=None, **kwargs):
        def action(context):
            calls.append(name)
            if error is not None:
                raise error
            return result

        return Operation(name=name, action=action, **kwargs)

    return factory


def python_step(name, code, **extra):
    """Plan step running a Python snippet with the current interpreter."""
    return {"name": name, "run": [sys.executable, "-c", code], **extra}


@pytest.fixture
def write_plan(tmp_path):
    """Write a plan dict to a YAML file and return its path."""

    def writer(data, filename="plan.yaml"):
        path = tmp_path / filename
        path.write_text(yaml.safe_dump(data, sort_keys=False))
        return path

    return writer
