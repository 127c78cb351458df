"""Engine facade: wires observation, validation, snapshots, actions, and plugins.

Every accepted write fans out in a fixed order:

1. Clear the action error (unless ``persist_action_error``).
2. Mark the state and the written path dirty.
3. ``formstate_change`` listeners.
4. The user effect, which may itself write (re-entering this sequence).
5. Request a sync validation pass. Without a running loop the pass is held
   until the outermost write of a cascade returns, so it runs once.
6. Reschedule the async validators related to the path.

INVARIANT: The root dict handed to :func:`create_state` is never replaced.
Rollback and reset rewrite it in place, so ``FormState.data`` and any views
taken from it stay valid for the engine's whole life.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable, Iterable, Mapping
from contextlib import AbstractContextManager
from dataclasses import dataclass
from typing import Any

from formstate.config.models import StateOptions
from formstate.domain.errors import AsyncErrorMap, EffectNotSynchronousError, ErrorTree
from formstate.domain.snapshots import Snapshot
from formstate.infrastructure.stores import Derived, Readable, Store
from formstate.infrastructure.tracking import TrackedDict, observe
from formstate.plugins.context import PluginContext
from formstate.plugins.manager import PluginManager
from formstate.services.action import Action, ActionCompleted, ActionExecutor, ActionPhase
from formstate.services.async_validation import AsyncValidationCoordinator, AsyncValidator
from formstate.services.snapshots import SnapshotManager
from formstate.services.validation import SyncValidator, ValidationScheduler

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EffectContext:
    """What the per-change effect receives.

    ``snapshot(title, replace=True)`` lets the effect checkpoint the state
    right after the change it is reacting to.
    """

    target: TrackedDict
    property: str
    current_value: Any
    old_value: Any
    snapshot: Callable[..., Snapshot]


Effect = Callable[[EffectContext], None]


@dataclass(frozen=True)
class StateStores:
    """The engine's observable values. Each has ``get()`` and ``subscribe()``."""

    errors: Readable[ErrorTree | None]
    has_errors: Readable[bool]
    is_dirty: Readable[bool]
    is_dirty_by_field: Readable[dict[str, bool]]
    action_in_progress: Readable[bool]
    action_error: Readable[Exception | None]
    snapshots: Readable[list[Snapshot]]
    async_errors: Readable[AsyncErrorMap]
    has_async_errors: Readable[bool]
    async_validating: Readable[list[str]]
    has_combined_errors: Readable[bool]


def _is_async_callable(fn: Callable[..., Any]) -> bool:
    return inspect.iscoroutinefunction(fn) or inspect.iscoroutinefunction(
        getattr(fn, "__call__", None)
    )


class FormState:
    """A tracked state root with validation, history, and a guarded action.

    Build instances with :func:`create_state`.
    """

    def __init__(
        self,
        init: dict[str, Any],
        *,
        options: StateOptions,
        validator: SyncValidator | None = None,
        effect: Effect | None = None,
        action: Action | None = None,
        action_completed: ActionCompleted | None = None,
        async_validators: Mapping[str, AsyncValidator] | None = None,
        plugins: Iterable[object] = (),
    ) -> None:
        if effect is not None and _is_async_callable(effect):
            raise EffectNotSynchronousError
        self._options = options
        self._effect = effect
        self._destroyed = False

        self._plugins = PluginManager(plugins)
        self._data = observe(init, self._on_change)

        self._is_dirty: Store[bool] = Store(False)
        self._dirty_fields: Store[dict[str, bool]] = Store({})

        self._validation = ValidationScheduler(
            validator,
            self._data,
            debounce=options.debounce_validation,
            on_validated=self._on_validated,
        )
        self._async = AsyncValidationCoordinator(
            async_validators,
            self._data,
            self._validation.errors,
            debounce=options.debounce_async_validation,
            clear_on_change=options.clear_async_errors_on_change,
            max_concurrent=options.max_concurrent_async_validations,
        )
        self._snapshots = SnapshotManager(init, on_snapshot=self._on_snapshot)
        self._executor = ActionExecutor(
            action,
            action_completed,
            allow_concurrent=options.allow_concurrent_actions,
            on_success=self._on_action_success,
            on_phase=self._on_action_phase,
        )
        self._has_combined_errors = Derived(
            [self._validation.has_errors, self._async.has_async_errors],
            lambda sync, pending: sync or pending,
        )

        self._state = StateStores(
            errors=self._validation.errors,
            has_errors=self._validation.has_errors,
            is_dirty=self._is_dirty,
            is_dirty_by_field=self._dirty_fields,
            action_in_progress=self._executor.in_progress,
            action_error=self._executor.action_error,
            snapshots=self._snapshots.snapshots,
            async_errors=self._async.async_errors,
            has_async_errors=self._async.has_async_errors,
            async_validating=self._async.async_validating,
            has_combined_errors=self._has_combined_errors,
        )

        self._validation.run_now()
        if options.run_async_validation_on_init:
            self._async.schedule_all()

        self._plugins.dispatch(
            "formstate_init",
            context=PluginContext(
                data=self._data,
                state=self._state,
                options=options,
                snapshot=self.snapshot,
            ),
        )
        logger.debug(
            "Engine ready: %d plugin(s), %d async validator(s)",
            len(self._plugins.get_plugins()),
            len(self._async.registered_paths),
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def data(self) -> TrackedDict:
        """The tracked root. Write through this handle only."""
        return self._data

    @property
    def state(self) -> StateStores:
        return self._state

    @property
    def options(self) -> StateOptions:
        return self._options

    @property
    def plugins(self) -> PluginManager:
        return self._plugins

    async def execute(self, params: Any = None) -> None:
        """Run the configured action; see :class:`ActionExecutor`."""
        await self._executor.execute(params)

    def batch(self) -> AbstractContextManager[None]:
        """Group writes so they share one sync validation pass.

        Only matters without a running event loop, where each write would
        otherwise validate inline. Under a loop, writes in one turn already
        coalesce.
        """
        return self._validation.hold()

    def snapshot(self, title: str, replace: bool = True) -> Snapshot:
        """Checkpoint the current state under *title*."""
        return self._snapshots.push(title, replace)

    def rollback(self, steps: int = 1) -> Snapshot | None:
        """Step back *steps* snapshots. Returns the restored snapshot, if any."""
        snapshot = self._snapshots.rollback(steps)
        if snapshot is None:
            return None
        self._after_restore()
        self._plugins.dispatch("formstate_rollback", snapshot=snapshot)
        return snapshot

    def rollback_to(self, title: str) -> bool:
        """Restore the most recent snapshot named *title*. False if none matches."""
        snapshot = self._snapshots.rollback_to(title)
        if snapshot is None:
            return False
        self._after_restore()
        self._plugins.dispatch("formstate_rollback", snapshot=snapshot)
        return True

    def reset(self) -> None:
        """Restore the baseline, drop later snapshots, and clear the dirty flags."""
        self._snapshots.reset()
        self._clear_dirty()
        self._after_restore()
        self._plugins.dispatch("formstate_reset")

    def destroy(self) -> None:
        """Stop every timer and run, detach derived values, and notify plugins.

        The data handle keeps working afterwards, but writes no longer fan out.
        """
        if self._destroyed:
            return
        self._destroyed = True
        self._validation.close()
        self._async.close()
        self._has_combined_errors.close()
        self._plugins.dispatch("formstate_destroy", reverse=True)
        logger.debug("Engine destroyed")

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _on_change(
        self, target: TrackedDict, path: str, current_value: Any, old_value: Any
    ) -> None:
        if self._destroyed:
            return
        with self._validation.hold():
            self._fan_out(target, path, current_value, old_value)

    def _fan_out(
        self, target: TrackedDict, path: str, current_value: Any, old_value: Any
    ) -> None:
        if not self._options.persist_action_error:
            self._executor.clear_error()
        self._is_dirty.set(True)
        dirty = self._dirty_fields.get()
        if not dirty.get(path):
            self._dirty_fields.set({**dirty, path: True})

        self._plugins.dispatch(
            "formstate_change",
            target=target,
            path=path,
            current_value=current_value,
            old_value=old_value,
        )

        if self._effect is not None:
            result = self._effect(
                EffectContext(
                    target=target,
                    property=path,
                    current_value=current_value,
                    old_value=old_value,
                    snapshot=self.snapshot,
                )
            )
            if inspect.isawaitable(result):
                if inspect.iscoroutine(result):
                    result.close()
                raise EffectNotSynchronousError

        self._validation.request()
        self._async.on_change(path)

    def _on_validated(self, errors: ErrorTree | None) -> None:
        self._plugins.dispatch("formstate_validation", errors=errors)

    def _on_snapshot(self, snapshot: Snapshot) -> None:
        self._plugins.dispatch("formstate_snapshot", snapshot=snapshot)

    def _on_action_success(self) -> None:
        if self._options.reset_dirty_on_action:
            self._clear_dirty()
        self._snapshots.collapse()

    def _on_action_phase(self, phase: ActionPhase, params: Any, error: Exception | None) -> None:
        self._plugins.dispatch("formstate_action", phase=phase, params=params, error=error)

    def _after_restore(self) -> None:
        self._async.cancel_all()
        self._validation.run_now()

    def _clear_dirty(self) -> None:
        self._is_dirty.set(False)
        self._dirty_fields.set({})


def create_state(
    init: dict[str, Any],
    *,
    validator: SyncValidator | None = None,
    effect: Effect | None = None,
    action: Action | None = None,
    action_completed: ActionCompleted | None = None,
    async_validators: Mapping[str, AsyncValidator] | None = None,
    options: StateOptions | Mapping[str, Any] | None = None,
    plugins: Iterable[object] | None = None,
    **option_overrides: Any,
) -> FormState:
    """Build a :class:`FormState` over *init*.

    Args:
        init: The root dict. The engine takes ownership and mutates it in place.
        validator: ``validator(data) -> ErrorTree``, re-run after changes.
        effect: Synchronous ``effect(ctx)`` called on every accepted write.
        action: Sync or async submit action run by ``execute``.
        action_completed: Called after the action, with the error on failure.
        async_validators: Path -> ``async validate(value, source, signal) -> str``.
        options: A :class:`StateOptions` or a mapping of option overrides.
        plugins: Lifecycle listeners carrying ``@hookimpl`` methods, in call order.
        **option_overrides: Individual option overrides, applied last.

    Raises:
        EffectNotSynchronousError: *effect* is an ``async`` function.
        pydantic.ValidationError: An option is unknown or out of range.
        TypeError: *init* is not a dict.
    """
    if isinstance(options, StateOptions):
        base = options.model_dump()
    else:
        base = dict(options or {})
    resolved = StateOptions.model_validate({**base, **option_overrides})
    return FormState(
        init,
        options=resolved,
        validator=validator,
        effect=effect,
        action=action,
        action_completed=action_completed,
        async_validators=async_validators,
        plugins=plugins or (),
    )
