"""formstate — a reactive form/state engine.

Tracks every write into a nested dict/list graph and drives sync and async
validation, named snapshots with rollback, and a single-flight submit action.
"""

from formstate.config import StateOptions, configure_logging
from formstate.domain.errors import EffectNotSynchronousError, FormStateError
from formstate.domain.snapshots import Snapshot
from formstate.domain.validators import (
    array_validator,
    date_validator,
    number_validator,
    string_validator,
)
from formstate.plugins import PluginContext, hookimpl
from formstate.plugins.builtins import DevtoolsPlugin
from formstate.services.engine import EffectContext, FormState, StateStores, create_state

__version__ = "0.1.0"

__all__ = [
    "DevtoolsPlugin",
    "EffectContext",
    "EffectNotSynchronousError",
    "FormState",
    "FormStateError",
    "PluginContext",
    "Snapshot",
    "StateOptions",
    "StateStores",
    "array_validator",
    "configure_logging",
    "create_state",
    "date_validator",
    "hookimpl",
    "number_validator",
    "string_validator",
]
