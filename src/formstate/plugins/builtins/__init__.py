"""Built-in plugins shipped with formstate."""

from formstate.plugins.builtins.devtools import DevtoolsPlugin

__all__ = ["DevtoolsPlugin"]
