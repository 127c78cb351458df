"""Context object handed to plugins at init."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from formstate.config.models import StateOptions
    from formstate.domain.snapshots import Snapshot
    from formstate.infrastructure.tracking import TrackedDict
    from formstate.services.engine import StateStores


@dataclass(frozen=True)
class PluginContext:
    """What a plugin may hold on to after ``formstate_init``.

    Attributes:
        data: The tracked data handle.
        state: The engine's observable values.
        options: The resolved engine options.
        snapshot: ``snapshot(title, replace=True)`` checkpoint function.
    """

    data: TrackedDict
    state: StateStores
    options: StateOptions
    snapshot: Callable[..., Snapshot]
