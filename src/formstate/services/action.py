"""Single-flight execution of the user's submit action.

INVARIANT: ``in_progress`` is released on every exit path, and only after
the completion hook has finished.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any, Literal

from formstate.infrastructure.stores import Store
from formstate.services._helpers import maybe_await

logger = logging.getLogger(__name__)

Action = Callable[..., Awaitable[None] | None]
ActionCompleted = Callable[..., Awaitable[None] | None]
ActionPhase = Literal["before", "after"]


class ActionExecutor:
    """Guards a user action with single-flight semantics and error capture.

    Parameters:
        action: Sync or async callable. Called with ``params`` when given,
            with no arguments otherwise.
        action_completed: Called with no arguments on success, or with the
            exception on failure. May be async; it is awaited.
        allow_concurrent: Let a second ``execute`` start while one runs.
        on_success: Engine-side bookkeeping run before ``action_completed``.
        on_phase: Lifecycle notification, ``on_phase(phase, params, error)``.
    """

    def __init__(
        self,
        action: Action | None,
        action_completed: ActionCompleted | None = None,
        *,
        allow_concurrent: bool = False,
        on_success: Callable[[], None] | None = None,
        on_phase: Callable[[ActionPhase, Any, Exception | None], None] | None = None,
    ) -> None:
        self._action = action
        self._action_completed = action_completed
        self._allow_concurrent = allow_concurrent
        self._on_success = on_success
        self._on_phase = on_phase
        self._running = 0

        self.in_progress: Store[bool] = Store(False)
        self.action_error: Store[Exception | None] = Store(None)

    async def execute(self, params: Any = None) -> None:
        """Run the action unless one is already running (and concurrency is off)."""
        if self._action is None:
            logger.debug("execute() called with no action configured")
            return
        if self._running and not self._allow_concurrent:
            logger.debug("Action already in progress; execute() ignored")
            return

        self.action_error.set(None)
        self._running += 1
        self.in_progress.set(True)
        try:
            self._emit("before", params, None)
            try:
                await maybe_await(self._action(params) if params is not None else self._action())
            except Exception as exc:
                logger.debug("Action failed: %s", exc)
                if self._action_completed is not None:
                    await maybe_await(self._action_completed(exc))
                self.action_error.set(exc)
                self._emit("after", params, exc)
            else:
                if self._on_success is not None:
                    self._on_success()
                if self._action_completed is not None:
                    await maybe_await(self._action_completed())
                self._emit("after", params, None)
        finally:
            self._running -= 1
            if not self._running:
                self.in_progress.set(False)

    def clear_error(self) -> None:
        self.action_error.set(None)

    def _emit(self, phase: ActionPhase, params: Any, error: Exception | None) -> None:
        if self._on_phase is not None:
            self._on_phase(phase, params, error)
