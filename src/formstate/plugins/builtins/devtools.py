"""Built-in devtools plugin: structured logging of every lifecycle event.

Each event is emitted through structlog under the ``formstate.devtools``
logger with the store name bound, so JSON mode (see
:func:`formstate.config.logging.configure_logging`) yields one line per
event that external tooling can follow.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pluggy
import structlog

if TYPE_CHECKING:
    from formstate.domain.errors import ErrorTree
    from formstate.domain.snapshots import Snapshot
    from formstate.plugins.context import PluginContext

hookimpl = pluggy.HookimplMarker("formstate")


class DevtoolsPlugin:
    """Log changes, snapshots, actions, rollbacks, and resets.

    Args:
        label: Store label attached to every event (useful with several engines).
        log_validation: Also log every published validation tree.
        enabled: Master switch; a disabled plugin stays registered but silent.
    """

    name = "devtools"

    def __init__(
        self,
        *,
        label: str = "formstate",
        log_validation: bool = False,
        enabled: bool = True,
    ) -> None:
        self._label = label
        self._log_validation = log_validation
        self._enabled = enabled

    def _emit(self, event: str, **fields: Any) -> None:
        if self._enabled:
            structlog.get_logger("formstate.devtools").info(event, store=self._label, **fields)

    @hookimpl
    def formstate_init(self, context: PluginContext) -> None:
        self._emit("init", fields=sorted(context.data))

    @hookimpl
    def formstate_change(self, path: str, current_value: Any, old_value: Any) -> None:
        self._emit("change", path=path, old=old_value, new=current_value)

    @hookimpl
    def formstate_validation(self, errors: ErrorTree | None) -> None:
        if self._log_validation:
            self._emit("validation", errors=errors)

    @hookimpl
    def formstate_snapshot(self, snapshot: Snapshot) -> None:
        self._emit("snapshot", title=snapshot.title)

    @hookimpl
    def formstate_action(self, phase: str, params: Any, error: Exception | None) -> None:
        if error is not None:
            self._emit(f"action.{phase}", params=params, error=str(error))
        else:
            self._emit(f"action.{phase}", params=params)

    @hookimpl
    def formstate_rollback(self, snapshot: Snapshot) -> None:
        self._emit("rollback", title=snapshot.title)

    @hookimpl
    def formstate_reset(self) -> None:
        self._emit("reset")

    @hookimpl
    def formstate_destroy(self) -> None:
        self._emit("destroy")
