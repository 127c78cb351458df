"""Extension layer — lifecycle listeners via pluggy.

INVARIANT: Plugin failures are warnings, never errors.
"""

import pluggy

from formstate.plugins.context import PluginContext
from formstate.plugins.manager import PluginManager

hookimpl = pluggy.HookimplMarker("formstate")

__all__ = ["PluginContext", "PluginManager", "hookimpl"]
