"""Tests for operations module."""

import io
import logging

import pytest

from oprunner.operations import (
    LogLevel,
    Operation,
    OperationsProgress,
    OperationState,
    OperationStatus,
    RunContext,
    RunLogger,
    previous_succeeded,
)


class TestOperationState:
    """Tests for OperationState enum."""

    def test_state_values(self):
        """Test all state values exist."""
        assert OperationState.NOT_STARTED.value == "not_started"
        assert OperationState.IN_PROGRESS.value == "in_progress"
        assert OperationState.COMPLETED.value == "completed"
        assert OperationState.FAILED.value == "failed"
        assert OperationState.SKIPPED.value == "skipped"

    def test_labels(self):
        """Test friendly labels."""
        assert OperationState.NOT_STARTED.label == "Not Started"
        assert OperationState.IN_PROGRESS.label == "In Progress"
        assert OperationState.COMPLETED.label == "Completed"

    def test_terminal_states(self):
        """Test which states are terminal."""
        assert OperationState.COMPLETED.is_terminal
        assert OperationState.FAILED.is_terminal
        assert OperationState.SKIPPED.is_terminal
        assert not OperationState.NOT_STARTED.is_terminal
        assert not OperationState.IN_PROGRESS.is_terminal


class TestOperation:
    """Tests for Operation dataclass."""

    def test_defaults(self):
        """Test default handlers and precondition."""
        op = Operation(name="test", action=lambda ctx: None)
        assert op.precondition is previous_succeeded
        assert op.on_success is None
        assert op.on_failure is None

    def test_unique_ids(self):
        """Test each operation gets its own id."""
        first = Operation(name="same", action=lambda ctx: None)
        second = Operation(name="same", action=lambda ctx: None)
        assert first.id != second.id

    def test_status(self):
        """Test status record mirrors the operation."""
        op = Operation(name="deploy", action=lambda ctx: None)
        status = op.status()
        assert status.id == op.id
        assert status.name == "deploy"
        assert status.state == OperationState.NOT_STARTED


class TestOperationStatus:
    """Tests for OperationStatus value object."""

    def test_with_state_returns_copy(self):
        """Test with_state leaves the original untouched."""
        status = OperationStatus(id="1", name="op")
        updated = status.with_state(OperationState.IN_PROGRESS)

        assert status.state == OperationState.NOT_STARTED
        assert updated.state == OperationState.IN_PROGRESS
        assert updated.in_progress
        assert not status.in_progress

    def test_frozen(self):
        """Test statuses cannot be mutated."""
        status = OperationStatus(id="1", name="op")
        with pytest.raises(AttributeError):
            status.state = OperationState.FAILED

    def test_label(self):
        """Test label follows state."""
        assert OperationStatus(id="1", name="op", state=OperationState.FAILED).label == "Failed"


class TestPreviousSucceeded:
    """Tests for the default precondition."""

    def test_success_code(self):
        """Test zero outcome passes."""
        assert previous_succeeded(RunContext())

    def test_failure_code(self):
        """Test nonzero outcome fails."""
        assert not previous_succeeded(RunContext(last_outcome_code=-1))


class TestRunContext:
    """Tests for RunContext."""

    def test_record(self):
        """Test record updates last outcome and per-operation map."""
        context = RunContext()
        context.record("a", 0)
        context.record("b", 7)

        assert context.last_outcome_code == 7
        assert context.outcome_of("a") == 0
        assert context.outcome_of("b") == 7
        assert context.outcome_of("missing") is None

    def test_succeeded(self):
        """Test succeeded only for zero outcomes."""
        context = RunContext()
        context.record("a", 0)
        context.record("b", -1)

        assert context.succeeded("a")
        assert not context.succeeded("b")
        assert not context.succeeded("never-ran")

    def test_cancel_requested(self):
        """Test cancel flag follows the event."""
        context = RunContext()
        assert not context.cancel_requested
        context.cancel_event.set()
        assert context.cancel_requested


class TestRunLogger:
    """Tests for RunLogger."""

    def test_emits_levels(self):
        """Test each method emits its level."""
        lines = []
        run_logger = RunLogger(emit=lambda level, message: lines.append((level, message)))

        run_logger.info("one")
        run_logger.warning("two")
        run_logger.error("three")

        assert lines == [
            (LogLevel.INFORMATIONAL, "one"),
            (LogLevel.WARNING, "two"),
            (LogLevel.ERROR, "three"),
        ]

    def test_writes_log_file(self):
        """Test log file lines use level labels."""
        stream = io.StringIO()
        run_logger = RunLogger(log_file=stream)

        run_logger.info("started")
        run_logger.error("broken")

        lines = stream.getvalue().splitlines()
        assert len(lines) == 2
        assert lines[0].endswith("INFORMATION: started")
        assert lines[1].endswith("ERROR: broken")

    def test_forwards_to_stdlib_logging(self, caplog):
        """Test lines reach the oprunner.run logger."""
        with caplog.at_level(logging.INFO, logger="oprunner.run"):
            RunLogger().warning("careful")

        assert "careful" in caplog.text

    def test_closed_log_file(self, caplog):
        """Test a failing log file is reported and lines still reach the stream."""
        lines = []
        stream = io.StringIO()
        stream.close()
        run_logger = RunLogger(emit=lambda level, message: lines.append(message), log_file=stream)

        with caplog.at_level(logging.ERROR, logger="oprunner.operations.context"):
            run_logger.info("still delivered")

        assert lines == ["still delivered"]
        assert "Could not write run log line" in caplog.text

    def test_no_emit_no_file(self):
        """Test logger works without any sink."""
        RunLogger().info("nobody listens")


class TestOperationsProgress:
    """Tests for OperationsProgress sink."""

    def test_publish_appends_in_order(self):
        """Test new statuses are appended."""
        progress = OperationsProgress()
        progress.publish(OperationStatus(id="1", name="a"))
        progress.publish(OperationStatus(id="2", name="b"))

        assert [s.name for s in progress.snapshot()] == ["a", "b"]
        assert len(progress) == 2

    def test_publish_replaces_by_id(self):
        """Test an update replaces the status in place."""
        progress = OperationsProgress()
        progress.publish(OperationStatus(id="1", name="a"))
        progress.publish(OperationStatus(id="2", name="b"))
        progress.publish(OperationStatus(id="1", name="a", state=OperationState.COMPLETED))

        snapshot = progress.snapshot()
        assert [s.id for s in snapshot] == ["1", "2"]
        assert snapshot[0].state == OperationState.COMPLETED

    def test_current_operation(self):
        """Test current operation tracks the latest in-progress status."""
        progress = OperationsProgress()
        assert progress.current_operation is None

        progress.publish(OperationStatus(id="1", name="a", state=OperationState.IN_PROGRESS))
        assert progress.current_operation.name == "a"

        progress.publish(OperationStatus(id="1", name="a", state=OperationState.COMPLETED))
        assert progress.current_operation.state == OperationState.COMPLETED

    def test_snapshot_is_copy(self):
        """Test snapshot cannot change the sink."""
        progress = OperationsProgress()
        progress.publish(OperationStatus(id="1", name="a"))

        snapshot = progress.snapshot()
        snapshot.clear()

        assert len(progress) == 1

    def test_get_and_count(self):
        """Test lookup by id and counting by state."""
        progress = OperationsProgress()
        progress.publish(OperationStatus(id="1", name="a", state=OperationState.COMPLETED))
        progress.publish(OperationStatus(id="2", name="b", state=OperationState.SKIPPED))

        assert progress.get("2").name == "b"
        assert progress.get("3") is None
        assert progress.count(OperationState.COMPLETED) == 1
        assert progress.count(OperationState.FAILED) == 0

    def test_clear(self):
        """Test clear empties the sink."""
        progress = OperationsProgress()
        progress.publish(OperationStatus(id="1", name="a", state=OperationState.IN_PROGRESS))
        progress.clear()

        assert progress.snapshot() == []
        assert progress.current_operation is None
