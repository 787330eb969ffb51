"""Throttled FIFO task queue with cooperative cancellation.

The queue starts at most one task per ``interval`` seconds, in submission
order. Spacing is measured between dispatch *starts*: a slow task does not
delay the next dispatch, and a fast one does not let the next task start
early. A task may be withdrawn through its :class:`CancellationToken` while it
is still waiting; once dispatched it always runs to completion.
"""

from __future__ import annotations

import asyncio
import contextlib
import itertools
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, Protocol, TypeVar

from .exceptions import CancelledBeforeEnqueueError, CancelledWhileQueuedError, QueueTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# YGOPRODeck allows 20 requests per second
DEFAULT_INTERVAL = 0.05


class CancellationToken:
    """One-shot cancellation signal shared between a caller and the queue."""

    def __init__(self) -> None:
        self._cancelled = False
        self._callbacks: list[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Cancel the token and run registered callbacks (idempotent)."""
        if self._cancelled:
            return
        self._cancelled = True
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()

    def add_callback(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register a callback for cancellation.

        The callback runs immediately if the token is already cancelled.

        Returns:
            A function that unregisters the callback.
        """
        if self._cancelled:
            callback()
            return lambda: None

        self._callbacks.append(callback)

        def remove() -> None:
            with contextlib.suppress(ValueError):
                self._callbacks.remove(callback)

        return remove


class TaskState(Enum):
    """Lifecycle of a queued task."""

    QUEUED = "queued"
    RUNNING = "running"
    DONE = "done"
    ABORTED = "aborted"


@dataclass(eq=False)
class QueueTask(Generic[T]):
    """A task owned by the queue until it is dispatched."""

    sequence_index: int
    runnable: Callable[[], Awaitable[T]]
    future: asyncio.Future[T]
    token: CancellationToken | None = None
    state: TaskState = TaskState.QUEUED
    runner: asyncio.Task[None] | None = field(default=None, repr=False)
    unsubscribe: Callable[[], None] | None = field(default=None, repr=False)


class TimeQueue(Protocol):
    """Anything that can schedule request attempts for the executor."""

    def enqueue(
        self,
        task: Callable[[], Awaitable[T]],
        token: CancellationToken | None = None,
    ) -> Awaitable[T]: ...


class ThrottledQueue:
    """Dispatch tasks one at a time, at least ``interval`` seconds apart.

    Must be used from within a running event loop; all state changes happen on
    the loop thread.
    """

    def __init__(self, interval: float = DEFAULT_INTERVAL):
        if interval < 0:
            raise ValueError(f"Interval must be non-negative, got: {interval}")
        self.interval = interval
        self._pending: deque[QueueTask[Any]] = deque()
        self._processing = False
        self._timer: asyncio.TimerHandle | None = None
        self._idle_waiters: list[asyncio.Future[None]] = []
        self._sequence = itertools.count()
        # Strong references to dispatched runners until they finish
        self._runners: set[asyncio.Task[None]] = set()

    @property
    def processing(self) -> bool:
        """True while dispatching, until an interval passes with nothing queued."""
        return self._processing

    @property
    def pending(self) -> int:
        """Number of tasks waiting to be dispatched."""
        return len(self._pending)

    def enqueue(
        self,
        task: Callable[[], Awaitable[T]],
        token: CancellationToken | None = None,
    ) -> asyncio.Future[T]:
        """Queue ``task`` and return a future for its result.

        This method never suspends: the task is appended and, if the queue was
        idle, dispatched before it returns.

        Args:
            task: Zero-argument callable returning an awaitable
            token: Optional token to withdraw the task before it starts

        Returns:
            Future resolved with the task's result or exception. It fails with
            CancelledBeforeEnqueueError or CancelledWhileQueuedError when the
            token fires before dispatch.
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future[T] = loop.create_future()

        if token is not None and token.cancelled:
            future.set_exception(CancelledBeforeEnqueueError())
            return future

        entry: QueueTask[T] = QueueTask(
            sequence_index=next(self._sequence),
            runnable=task,
            future=future,
            token=token,
        )
        self._pending.append(entry)

        if token is not None:
            entry.unsubscribe = token.add_callback(lambda: self._abort(entry))
        future.add_done_callback(lambda _f: self._on_future_done(entry))

        if not self._processing:
            self._dispatch_next()
        return future

    async def done_processing(self, timeout: float | None = None) -> None:
        """Wait until the queue stops processing.

        Returns immediately when idle. Does not wait for dispatched tasks to
        finish, only for the dispatch loop to go idle.

        Raises:
            QueueTimeoutError: If ``timeout`` seconds pass first.
        """
        if not self._processing:
            return

        waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._idle_waiters.append(waiter)
        try:
            if timeout is None:
                await waiter
            else:
                await asyncio.wait_for(waiter, timeout)
        except asyncio.TimeoutError:
            raise QueueTimeoutError(timeout) from None  # type: ignore[arg-type]
        finally:
            with contextlib.suppress(ValueError):
                self._idle_waiters.remove(waiter)

    def _dispatch_next(self) -> None:
        self._timer = None

        entry = None
        while self._pending:
            candidate = self._pending.popleft()
            if candidate.state is TaskState.QUEUED:
                entry = candidate
                break

        if entry is None:
            self._processing = False
            self._release_idle_waiters()
            return

        self._processing = True
        entry.state = TaskState.RUNNING
        self._detach_token(entry)

        loop = asyncio.get_running_loop()
        runner = loop.create_task(self._run(entry))
        entry.runner = runner
        self._runners.add(runner)
        runner.add_done_callback(self._runners.discard)

        self._timer = loop.call_later(self.interval, self._dispatch_next)

    async def _run(self, entry: QueueTask[Any]) -> None:
        try:
            result = await entry.runnable()
        except asyncio.CancelledError:
            entry.future.cancel()
            raise
        except Exception as e:
            if not entry.future.done():
                entry.future.set_exception(e)
        else:
            if not entry.future.done():
                entry.future.set_result(result)
        finally:
            entry.state = TaskState.DONE

    def _abort(self, entry: QueueTask[Any]) -> None:
        """Withdraw a task whose token fired while it was still queued."""
        if entry.state is not TaskState.QUEUED:
            return
        self._withdraw(entry)
        if not entry.future.done():
            entry.future.set_exception(CancelledWhileQueuedError())

    def _withdraw(self, entry: QueueTask[Any]) -> None:
        entry.state = TaskState.ABORTED
        with contextlib.suppress(ValueError):
            self._pending.remove(entry)
        self._detach_token(entry)
        logger.debug("Withdrew queued task #%d", entry.sequence_index)

    def _on_future_done(self, entry: QueueTask[Any]) -> None:
        # Caller gave up on the result (e.g. a timeout around the await)
        if not entry.future.cancelled():
            return
        if entry.state is TaskState.QUEUED:
            self._withdraw(entry)
        elif entry.state is TaskState.RUNNING and entry.runner is not None:
            entry.runner.cancel()

    def _detach_token(self, entry: QueueTask[Any]) -> None:
        if entry.unsubscribe is not None:
            entry.unsubscribe()
            entry.unsubscribe = None

    def _release_idle_waiters(self) -> None:
        waiters, self._idle_waiters = self._idle_waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(None)
