"""Sequential runner - Executes queued operations one at a time."""

import logging
import threading
from collections.abc import Iterable
from typing import TextIO

from ..constants import (
    DEFAULT_FAILURE_MESSAGE,
    OUTCOME_CANCELLED,
    OUTCOME_FAILED,
    OUTCOME_REJECTED,
    OUTCOME_SUCCESS,
)
from ..exceptions import RunnerStateError
from ..operations import (
    LogEvent,
    LogLevel,
    Operation,
    OperationsProgress,
    OperationState,
    OperationStatus,
    ProgressSink,
    RunContext,
    RunLogger,
)
from ..operations.context import utc_now
from .base import RunnerCallbacks, RunnerResult, RunProgress, RunState

logger = logging.getLogger(__name__)


def outcome_code_for(error: BaseException) -> int:
    """
    Map a failure to a nonzero outcome code.

    Errors carrying a nonzero integer ``code`` attribute (OperationError and
    subclasses) keep their code; anything else maps to OUTCOME_FAILED.
    """
    code = getattr(error, "code", None)
    if isinstance(code, int) and not isinstance(code, bool) and code != OUTCOME_SUCCESS:
        return code
    return OUTCOME_FAILED


class OperationRunner:
    """
    Sequential operation runner.

    Executes queued operations in enqueue order on a single background
    thread, gating each one on its precondition and stopping at the first
    failure. Status, log, progress and completion events go to subscribed
    RunnerCallbacks, on the runner's thread, in the order they happen.

    A runner performs one run. Build a new runner (or call reset() once the
    run is over) to run again.
    """

    def __init__(
        self,
        name: str = "operations",
        progress: ProgressSink | None = None,
        callbacks: RunnerCallbacks | None = None,
        indeterminate: bool = False,
        log_file: TextIO | None = None,
    ):
        """
        Initialize the runner.

        Args:
            name: Label for this run, used in logs and results
            progress: Sink receiving status updates (default: OperationsProgress)
            callbacks: Optional observer to subscribe right away
            indeterminate: Report progress as indeterminate instead of fractional
            log_file: Optional text stream receiving every run log line
        """
        self.name = name
        self.indeterminate = indeterminate
        self.progress_tracker: ProgressSink = progress if progress is not None else OperationsProgress()
        self.context: RunContext | None = None

        self._log_file = log_file
        self._lock = threading.Lock()
        self._queue: list[Operation] = []
        self._cursor = 0
        self._subscribers: list[RunnerCallbacks] = []
        self._state = RunState.IDLE
        self._thread: threading.Thread | None = None
        self._result: RunnerResult | None = None
        self._done = threading.Event()
        self._cancel_event = threading.Event()
        self._current: Operation | None = None

        if callbacks is not None:
            self.subscribe(callbacks)

    # -- Queue ---------------------------------------------------------------

    def enqueue(self, operation: Operation) -> Operation:
        """
        Append an operation to the queue.

        Only valid before the run starts. The operation is published to
        the progress sink as NOT_STARTED.

        Returns:
            The operation, so callers can keep its id for preconditions

        Raises:
            RunnerStateError: If the runner already started, or the same
                operation is already queued
        """
        with self._lock:
            if self._state != RunState.IDLE:
                raise RunnerStateError(f"Cannot enqueue '{operation.name}': runner is {self._state.value}")
            if any(queued.id == operation.id for queued in self._queue):
                raise RunnerStateError(f"Operation '{operation.name}' ({operation.id}) is already queued")
            self._queue.append(operation)

        self.progress_tracker.publish(operation.status())
        return operation

    def extend(self, operations: Iterable[Operation]) -> None:
        """Enqueue several operations in order."""
        for operation in operations:
            self.enqueue(operation)

    @property
    def operations(self) -> tuple[Operation, ...]:
        """Queued operations, in run order."""
        with self._lock:
            return tuple(self._queue)

    @property
    def operations_count(self) -> int:
        with self._lock:
            return len(self._queue)

    @property
    def current_operation_index(self) -> int:
        """Index of the next operation to finish (number finished so far)."""
        return self._cursor

    # -- Observers -----------------------------------------------------------

    def subscribe(self, callbacks: RunnerCallbacks) -> None:
        """Register an observer. Safe to call while a run is in flight."""
        with self._lock:
            self._subscribers.append(callbacks)

    def unsubscribe(self, callbacks: RunnerCallbacks) -> None:
        """Remove an observer. Unknown observers are ignored."""
        with self._lock:
            if callbacks in self._subscribers:
                self._subscribers.remove(callbacks)

    # -- Lifecycle -----------------------------------------------------------

    @property
    def state(self) -> RunState:
        with self._lock:
            return self._state

    @property
    def is_running(self) -> bool:
        return self.state == RunState.RUNNING

    @property
    def result(self) -> RunnerResult | None:
        """Result of the finished run, or None."""
        with self._lock:
            return self._result

    def start(self) -> None:
        """
        Begin executing operations on a background thread.

        Returns immediately. Business failures are reported through the
        status, log and completion events, never raised here.

        Raises:
            RunnerStateError: If the runner was already started
        """
        self._begin()
        self._thread = threading.Thread(
            target=self._execute,
            name=f"oprunner-{self.name}",
            daemon=True,
        )
        self._thread.start()

    def run(self) -> RunnerResult:
        """
        Execute operations on the calling thread.

        Returns:
            RunnerResult with execution summary

        Raises:
            RunnerStateError: If the runner was already started
        """
        self._begin()
        return self._execute()

    def wait(self, timeout: float | None = None) -> RunnerResult | None:
        """
        Wait for the run to finish.

        Args:
            timeout: Seconds to wait, None to wait indefinitely

        Returns:
            RunnerResult, or None if the run did not finish in time

        Raises:
            RunnerStateError: If the runner was never started
        """
        if self.state == RunState.IDLE:
            raise RunnerStateError("Cannot wait: runner was not started")
        if not self._done.wait(timeout):
            return None
        return self.result

    def request_cancel(self) -> None:
        """
        Ask the run to stop before its next operation.

        The operation in flight is not interrupted; actions may poll
        ``context.cancel_requested`` to stop early.
        """
        self._cancel_event.set()
        logger.info("Cancellation requested for %s", self.name)

    def reset(self) -> None:
        """
        Return the runner to IDLE with an empty queue.

        Raises:
            RunnerStateError: If a run is in flight, or its completion
                event is still being delivered
        """
        with self._lock:
            if self._state == RunState.RUNNING:
                raise RunnerStateError("Cannot reset while a run is in flight")
            if self._state.is_terminal and not self._done.is_set():
                raise RunnerStateError("Cannot reset before the completion event was delivered")
            self._queue = []
            self._cursor = 0
            self._state = RunState.IDLE
            self._result = None
            self._thread = None
            self.context = None
            self._done.clear()
            self._cancel_event.clear()

        self.progress_tracker.clear()

    # -- Observation ---------------------------------------------------------

    def snapshot(self) -> list[OperationStatus]:
        """Current ordered statuses. Safe to call during a run."""
        return self.progress_tracker.snapshot()

    def progress(self) -> RunProgress:
        """Current overall progress of the run."""
        current = self._current
        state = self.state
        if state == RunState.IDLE:
            message = "Not started"
        elif current is not None:
            message = f"Executing {current.name}..."
        elif state.is_terminal:
            message = "Completed" if state == RunState.SUCCEEDED else "Failed"
        else:
            message = "Starting..."
        return RunProgress(
            message=message,
            completed=self._cursor,
            total=self.operations_count,
            indeterminate=self.indeterminate,
            current_operation=current.name if current is not None else None,
        )

    # -- Execution -----------------------------------------------------------

    def _begin(self) -> None:
        with self._lock:
            if self._state != RunState.IDLE:
                raise RunnerStateError(f"Runner '{self.name}' was already started ({self._state.value})")
            self._state = RunState.RUNNING
            self._done.clear()
            self.context = RunContext(
                logger=RunLogger(emit=self._write_log, log_file=self._log_file),
                cancel_event=self._cancel_event,
            )

    def _execute(self) -> RunnerResult:
        context = self.context
        queue = self.operations
        result = RunnerResult(success=False, runner_name=self.name, total=len(queue), started_at=utc_now())

        try:
            self._notify("on_run_start", self.name, len(queue))
            context.last_outcome_code = OUTCOME_SUCCESS

            for operation in queue:
                self._current = None
                if context.cancel_requested:
                    context.last_outcome_code = OUTCOME_CANCELLED
                    result.cancelled = True
                    context.logger.warning(f"Run cancelled before {operation.name}")
                    break

                if not self._run_operation(operation, context, result):
                    break

            self._current = None

            # Operations never reached are abandoned, reported as skipped
            for operation in queue[self._cursor :]:
                self._set_state(operation, OperationState.SKIPPED)
                result.skipped += 1

            result.last_outcome_code = context.last_outcome_code
            result.success = context.last_outcome_code == OUTCOME_SUCCESS and result.failed == 0

            if result.success:
                context.logger.info(f"{self.name}: all {result.completed} operations completed")
            else:
                context.logger.error(
                    f"{self.name}: stopped after {result.completed} of {result.total} operations"
                    f" ({result.failed} failed, {result.skipped} skipped)"
                )
        finally:
            self._current = None
            result.finished_at = utc_now()
            with self._lock:
                self._state = RunState.SUCCEEDED if result.success else RunState.FAILED
                self._result = result

            self._report_progress("Completed" if result.success else "Failed")
            self._notify("on_complete", result.copy())
            self._done.set()

        return result

    def _run_operation(self, operation: Operation, context: RunContext, result: RunnerResult) -> bool:
        """Run one operation. Returns False when the run must stop."""
        self._current = operation
        self._set_state(operation, OperationState.IN_PROGRESS)
        self._report_progress(f"Executing {operation.name}...")
        context.logger.info(f"Executing {operation.name}...")

        try:
            allowed = operation.precondition(context)
        except Exception as error:
            self._fail(operation, error, context, result)
            return False

        if not allowed:
            context.record(operation.id, OUTCOME_REJECTED)
            self._set_state(operation, OperationState.SKIPPED)
            result.skipped += 1
            self._cursor += 1
            context.logger.warning(f"Precondition not met for {operation.name}, stopping")
            return False

        try:
            outcome = operation.action(context)
            if operation.on_success is not None:
                operation.on_success(outcome)
        except Exception as error:
            self._fail(operation, error, context, result)
            return False

        context.record(operation.id, OUTCOME_SUCCESS)
        self._set_state(operation, OperationState.COMPLETED)
        result.completed += 1
        self._cursor += 1
        return True

    def _fail(self, operation: Operation, error: Exception, context: RunContext, result: RunnerResult) -> None:
        context.record(operation.id, outcome_code_for(error))
        message = self._failure_message(operation, error)
        self._set_state(operation, OperationState.FAILED)
        result.failed += 1
        result.errors.append(f"{operation.name}: {message}")
        self._cursor += 1
        context.logger.error(message)

    def _failure_message(self, operation: Operation, error: Exception) -> str:
        message = None
        if operation.on_failure is not None:
            try:
                message = operation.on_failure(error)
            except Exception:
                logger.exception("Failure handler of %s raised", operation.name)
        return message or str(error) or DEFAULT_FAILURE_MESSAGE

    # -- Events --------------------------------------------------------------

    def _set_state(self, operation: Operation, state: OperationState) -> None:
        status = operation.status(state)
        try:
            self.progress_tracker.publish(status)
        except Exception:
            logger.exception("Progress sink rejected status of %s", operation.name)
        self._notify("on_status", status)

    def _report_progress(self, message: str) -> None:
        current = self._current
        self._notify(
            "on_progress",
            RunProgress(
                message=message,
                completed=self._cursor,
                total=self.operations_count,
                indeterminate=self.indeterminate,
                current_operation=current.name if current is not None else None,
            ),
        )

    def _write_log(self, level: LogLevel, message: str) -> None:
        current = self._current
        event = LogEvent(
            operation_name=current.name if current is not None else None,
            level=level,
            message=message,
            timestamp=utc_now(),
        )
        self._notify("on_log", event)

    def _notify(self, hook: str, *args) -> None:
        with self._lock:
            subscribers = list(self._subscribers)

        for callbacks in subscribers:
            callback = getattr(callbacks, hook)
            if callback is None:
                continue
            try:
                callback(*args)
            except Exception:
                logger.exception("Runner callback %s raised", hook)
