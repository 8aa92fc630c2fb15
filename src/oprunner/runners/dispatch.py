"""
Dispatch helpers - Deliver runner events on another thread or event loop.

Runner callbacks fire on the runner's own thread. Observers that own
thread-affine state (a terminal UI, an asyncio application) wrap their
callbacks in a dispatcher and subscribe the dispatcher's ``callbacks``
instead. Event payloads are immutable or copied, so nothing is shared
between the two sides.
"""

import asyncio
import queue
import time
from typing import Any

from .base import RunnerCallbacks, RunnerResult


def _forwarding_callbacks(post) -> RunnerCallbacks:
    """Build callbacks that hand every event to ``post(hook, args)``."""
    return RunnerCallbacks(
        on_run_start=lambda name, total: post("on_run_start", (name, total)),
        on_status=lambda status: post("on_status", (status,)),
        on_log=lambda event: post("on_log", (event,)),
        on_progress=lambda progress: post("on_progress", (progress,)),
        on_complete=lambda result: post("on_complete", (result.copy(),)),
    )


def _deliver(target: RunnerCallbacks, hook: str, args: tuple[Any, ...]) -> None:
    callback = getattr(target, hook)
    if callback is not None:
        callback(*args)


class QueueDispatcher:
    """
    Marshal runner events onto the thread that calls ``pump``.

    Example:
        dispatcher = QueueDispatcher(RunnerCallbacks(on_log=print_log))
        runner.subscribe(dispatcher.callbacks)
        runner.start()
        result = dispatcher.drain_until_complete()
    """

    def __init__(self, target: RunnerCallbacks):
        self.target = target
        self.result: RunnerResult | None = None
        self._events: queue.Queue[tuple[str, tuple[Any, ...]]] = queue.Queue()
        self.callbacks = _forwarding_callbacks(self._post)

    def _post(self, hook: str, args: tuple[Any, ...]) -> None:
        self._events.put((hook, args))

    @property
    def complete(self) -> bool:
        """True once the completion event was delivered."""
        return self.result is not None

    def pump(self, timeout: float | None = 0.0) -> int:
        """
        Deliver queued events to the target on the calling thread.

        Args:
            timeout: Seconds to wait for the first event (0 = don't wait,
                None = wait until one arrives)

        Returns:
            Number of events delivered
        """
        delivered = 0
        block = timeout is None or timeout > 0
        try:
            hook, args = self._events.get(block=block, timeout=timeout if block else None)
        except queue.Empty:
            return 0

        while True:
            self._dispatch(hook, args)
            delivered += 1
            try:
                hook, args = self._events.get_nowait()
            except queue.Empty:
                return delivered

    def drain_until_complete(self, timeout: float | None = None, poll_interval: float = 0.1) -> RunnerResult | None:
        """
        Pump events until the run's completion event is delivered.

        Args:
            timeout: Overall seconds to wait, None to wait indefinitely
            poll_interval: Seconds to block per pump

        Returns:
            The RunnerResult, or None if the timeout expired first
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while not self.complete:
            wait = poll_interval
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return None
                wait = min(wait, remaining)
            self.pump(timeout=wait)
        return self.result

    def _dispatch(self, hook: str, args: tuple[Any, ...]) -> None:
        if hook == "on_complete":
            self.result = args[0]
        _deliver(self.target, hook, args)


class AsyncioDispatcher:
    """
    Marshal runner events onto an asyncio event loop.

    Must be created on the loop's thread. Each event is scheduled with
    ``loop.call_soon_threadsafe``; log events are also put on ``logs``
    for consumers that prefer to iterate them.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, target: RunnerCallbacks | None = None):
        self.loop = loop
        self.target = target if target is not None else RunnerCallbacks()
        self.logs: asyncio.Queue = asyncio.Queue()
        self._completed: asyncio.Future = loop.create_future()
        self.callbacks = _forwarding_callbacks(self._post)

    def _post(self, hook: str, args: tuple[Any, ...]) -> None:
        self.loop.call_soon_threadsafe(self._dispatch, hook, args)

    def _dispatch(self, hook: str, args: tuple[Any, ...]) -> None:
        if hook == "on_log":
            self.logs.put_nowait(args[0])
        try:
            _deliver(self.target, hook, args)
        finally:
            if hook == "on_complete" and not self._completed.done():
                self._completed.set_result(args[0])

    async def wait_complete(self) -> RunnerResult:
        """Wait for the completion event and return its result."""
        return await self._completed


__all__ = ["AsyncioDispatcher", "QueueDispatcher"]
