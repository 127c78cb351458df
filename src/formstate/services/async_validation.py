"""Per-path asynchronous validation: debounce, cancel, race, and publish.

Each registered path owns at most one :class:`ValidationTracker` at a time.
A change at a related path cancels the current tracker (pending timer,
queued start, or running task) and arms a fresh debounce timer. When the
timer fires:

1. A non-empty *sync* error at the path wins; no async run starts.
2. If the concurrency limit is reached, the path waits in a FIFO queue.
3. Otherwise the validator runs as an asyncio task with a cancel signal.

A run publishes into the async error map only if its tracker is still the
current one and was never cancelled. Exceptions raised because of a
cancellation are swallowed; any other exception is a validator defect and
goes to the event loop's exception handler.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from formstate.domain.errors import AsyncErrorMap, ErrorTree, error_at_path, has_async_errors
from formstate.domain.paths import get_at_path, matching_paths
from formstate.infrastructure.stores import Derived, Readable, Store
from formstate.services._helpers import maybe_await, running_loop

logger = logging.getLogger(__name__)

AsyncValidator = Callable[[Any, Any, asyncio.Event], Awaitable[str]]


@dataclass
class ValidationTracker:
    """Cancellation state for one scheduled-or-running validation of one path."""

    signal: asyncio.Event = field(default_factory=asyncio.Event)
    timer: asyncio.TimerHandle | None = None
    task: asyncio.Task[None] | None = None

    @property
    def cancelled(self) -> bool:
        return self.signal.is_set()

    def cancel(self) -> None:
        self.signal.set()
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None
        if self.task is not None and not self.task.done():
            self.task.cancel()


class AsyncValidationCoordinator:
    """Owns the per-path async validators and the flat async error map.

    Parameters:
        validators: Registered path -> ``async validate(value, source, signal)``.
        source: The tracked data handle.
        sync_errors: The published sync ErrorTree, consulted at fire time.
        debounce: Per-path quiet period in seconds.
        clear_on_change: Drop a path's published error when it is rescheduled.
        max_concurrent: Validators allowed to run at once.
    """

    def __init__(
        self,
        validators: Mapping[str, AsyncValidator] | None,
        source: Mapping[str, Any],
        sync_errors: Readable[ErrorTree | None],
        *,
        debounce: float = 0.3,
        clear_on_change: bool = True,
        max_concurrent: int = 4,
    ) -> None:
        self._validators: dict[str, AsyncValidator] = dict(validators or {})
        self._source = source
        self._sync_errors = sync_errors
        self._debounce = debounce
        self._clear_on_change = clear_on_change
        self._max_concurrent = max_concurrent

        self._trackers: dict[str, ValidationTracker] = {}
        self._queue: deque[tuple[str, ValidationTracker]] = deque()
        self._running = 0

        self.async_errors: Store[AsyncErrorMap] = Store({})
        self.async_validating: Store[list[str]] = Store([])
        self.has_async_errors = Derived([self.async_errors], has_async_errors)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def registered_paths(self) -> list[str]:
        return list(self._validators)

    @property
    def running_count(self) -> int:
        return self._running

    def on_change(self, path: str) -> None:
        """Reschedule every registered path related to a change at *path*."""
        for registered in matching_paths(path, self._validators):
            self.schedule(registered)

    def schedule(self, path: str) -> None:
        """Cancel any run for *path* and arm a new debounce timer."""
        self.cancel(path)
        if self._clear_on_change and path in self.async_errors.get():
            remaining = dict(self.async_errors.get())
            del remaining[path]
            self.async_errors.set(remaining)

        loop = running_loop()
        if loop is None:
            logger.debug("No running event loop; async validation of %s not scheduled", path)
            return
        tracker = ValidationTracker()
        tracker.timer = loop.call_later(self._debounce, self._fire, path, tracker)
        self._trackers[path] = tracker

    def schedule_all(self) -> None:
        for path in self._validators:
            self.schedule(path)

    def cancel(self, path: str) -> None:
        tracker = self._trackers.pop(path, None)
        if tracker is None:
            return
        tracker.cancel()
        self._dequeue(tracker)
        self._set_validating(path, validating=False)
        logger.debug("Cancelled async validation of %s", path)

    def cancel_all(self) -> None:
        """Abort every pending, queued, and running validation; clear all async errors."""
        for path in list(self._trackers):
            self.cancel(path)
        self._queue.clear()
        self.async_errors.set({})
        self.async_validating.set([])

    def close(self) -> None:
        self.cancel_all()
        self.has_async_errors.close()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _fire(self, path: str, tracker: ValidationTracker) -> None:
        tracker.timer = None
        if self._trackers.get(path) is not tracker:
            return
        if error_at_path(self._sync_errors.get(), path):
            logger.debug("Skipping async validation of %s: sync error present", path)
            del self._trackers[path]
            return
        if self._running >= self._max_concurrent:
            logger.debug("Queueing async validation of %s (%d running)", path, self._running)
            self._queue.append((path, tracker))
            return
        self._start(path, tracker)

    def _start(self, path: str, tracker: ValidationTracker) -> None:
        loop = asyncio.get_running_loop()
        self._running += 1
        self._set_validating(path, validating=True)
        task = loop.create_task(self._run(path, tracker), name=f"formstate-validate:{path}")
        tracker.task = task
        task.add_done_callback(lambda done: self._settle(path, tracker, done))

    async def _run(self, path: str, tracker: ValidationTracker) -> None:
        validator = self._validators[path]
        value = get_at_path(self._source, path)
        try:
            error = await maybe_await(validator(value, self._source, tracker.signal))
        except asyncio.CancelledError:
            if not tracker.cancelled:
                raise
            logger.debug("Async validation of %s aborted", path)
            return
        except Exception:
            if not tracker.cancelled:
                raise
            logger.debug("Async validation of %s raised after cancellation", path, exc_info=True)
            return
        if tracker.cancelled or self._trackers.get(path) is not tracker:
            return
        self.async_errors.set({**self.async_errors.get(), path: error})

    def _settle(self, path: str, tracker: ValidationTracker, task: asyncio.Task[None]) -> None:
        self._running -= 1
        if self._trackers.get(path) is tracker:
            del self._trackers[path]
            self._set_validating(path, validating=False)
        if not task.cancelled():
            exc = task.exception()
            if exc is not None:
                task.get_loop().call_exception_handler(
                    {
                        "message": f"Async validator for {path!r} raised",
                        "exception": exc,
                        "task": task,
                    }
                )
        self._drain()

    def _drain(self) -> None:
        while self._queue and self._running < self._max_concurrent:
            path, tracker = self._queue.popleft()
            if tracker.cancelled or self._trackers.get(path) is not tracker:
                continue
            self._start(path, tracker)

    def _dequeue(self, tracker: ValidationTracker) -> None:
        self._queue = deque(entry for entry in self._queue if entry[1] is not tracker)

    def _set_validating(self, path: str, *, validating: bool) -> None:
        current = self.async_validating.get()
        if validating and path not in current:
            self.async_validating.set([*current, path])
        elif not validating and path in current:
            self.async_validating.set([p for p in current if p != path])
