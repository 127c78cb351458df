"""Pluggy hook specifications for formstate lifecycle events.

Every hook is dispatched synchronously, at a fixed point in the engine:
init, each accepted change, each validation tree update, each snapshot,
each action phase, each rollback, each reset, and teardown.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pluggy

if TYPE_CHECKING:
    from formstate.domain.errors import ErrorTree
    from formstate.domain.snapshots import Snapshot
    from formstate.plugins.context import PluginContext

hookspec = pluggy.HookspecMarker("formstate")


class FormStateHookSpec:
    """Hook specifications for the formstate plugin system."""

    @hookspec
    def formstate_init(self, context: PluginContext) -> None:
        """Called once the engine is fully constructed."""

    @hookspec
    def formstate_change(
        self,
        target: Any,
        path: str,
        current_value: Any,
        old_value: Any,
    ) -> None:
        """Called after each accepted write, before the user effect."""

    @hookspec
    def formstate_validation(self, errors: ErrorTree | None) -> None:
        """Called after each sync validation pass publishes a tree."""

    @hookspec
    def formstate_snapshot(self, snapshot: Snapshot) -> None:
        """Called after a snapshot is pushed."""

    @hookspec
    def formstate_action(
        self,
        phase: str,
        params: Any,
        error: Exception | None,
    ) -> None:
        """Called before the action starts and after it settles."""

    @hookspec
    def formstate_rollback(self, snapshot: Snapshot) -> None:
        """Called after a rollback with the snapshot that was restored."""

    @hookspec
    def formstate_reset(self) -> None:
        """Called after a reset to the baseline."""

    @hookspec
    def formstate_destroy(self) -> None:
        """Called on teardown, in reverse plugin order."""
