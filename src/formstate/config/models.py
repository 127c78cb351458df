"""Pydantic option models with code-baked defaults.

Sparse contract: every switch is independently defaulted, so callers pass
only the overrides they care about. Durations are in seconds.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class StateOptions(BaseModel):
    """Engine behaviour switches, frozen after construction.

    Attributes:
        reset_dirty_on_action: Clear dirty flags after a successful action.
        debounce_validation: Delay before a sync validation pass. ``0``
            coalesces a burst into one pass on the next loop turn.
        allow_concurrent_actions: Let ``execute`` start while another
            action is still running.
        persist_action_error: Keep the last action error across edits.
        debounce_async_validation: Per-path quiet period before an async
            validator runs.
        run_async_validation_on_init: Schedule every async validator once
            at construction.
        clear_async_errors_on_change: Drop a path's async error as soon as
            a related field changes.
        max_concurrent_async_validations: Async validators allowed to run
            at once; the rest wait in FIFO order.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    reset_dirty_on_action: bool = True
    debounce_validation: float = Field(default=0.0, ge=0)
    allow_concurrent_actions: bool = False
    persist_action_error: bool = False
    debounce_async_validation: float = Field(default=0.3, ge=0)
    run_async_validation_on_init: bool = False
    clear_async_errors_on_change: bool = True
    max_concurrent_async_validations: int = Field(default=4, ge=1)
