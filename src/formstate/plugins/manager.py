"""Lifecycle listener registry for one engine.

Listeners are plain objects whose methods carry ``@hookimpl``. They fire in
the order they were given to the engine; teardown walks that order backwards.
Third-party listeners advertised under the ``formstate.plugins`` entry-point
group can be pulled in with :meth:`PluginManager.load_entrypoints`.

INVARIANT: A failing listener is logged as a warning. The engine and the
remaining listeners carry on.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Iterable
from typing import Any

import pluggy

from formstate.plugins.hookspecs import FormStateHookSpec

PROJECT_NAME = "formstate"
ENTRYPOINT_GROUP = "formstate.plugins"

logger = logging.getLogger(__name__)


class PluginManager:
    """Ordered pluggy registry with failure-isolated dispatch."""

    def __init__(self, plugins: Iterable[object] = ()) -> None:
        self._pm = pluggy.PluginManager(PROJECT_NAME)
        self._pm.add_hookspecs(FormStateHookSpec)
        for plugin in plugins:
            self.register_plugin(plugin)

    @property
    def hook(self) -> pluggy.HookRelay:
        return self._pm.hook

    def register_plugin(self, plugin: object, name: str | None = None) -> str:
        """Add *plugin* and return the name it was registered under.

        Without an explicit *name* the plugin's ``name`` attribute is used,
        then its class name. A taken name gets the object id appended.
        """
        label = name or getattr(plugin, "name", None) or type(plugin).__name__
        if self._pm.has_plugin(label):
            label = f"{label}-{id(plugin):x}"
        self._pm.register(plugin, name=label)
        logger.debug("Registered plugin: %s", label)
        return label

    def unregister(self, plugin: object) -> None:
        self._pm.unregister(plugin)

    def get_plugins(self) -> list[object]:
        return list(self._pm.get_plugins())

    def list_plugin_names(self) -> list[str]:
        names = []
        for plugin in self._pm.get_plugins():
            names.append(self._pm.get_name(plugin) or type(plugin).__name__)
        return names

    def load_entrypoints(self) -> list[str]:
        """Import listeners from installed distributions; returns every registered name."""
        loaded = self._pm.load_setuptools_entrypoints(ENTRYPOINT_GROUP)
        logger.debug("Loaded %d entry-point plugin(s)", loaded)
        for cls in [p for p in self._pm.get_plugins() if inspect.isclass(p)]:
            self._swap_class_for_instance(cls)
        return self.list_plugin_names()

    def dispatch(self, hook_name: str, *, reverse: bool = False, **payload: Any) -> None:
        """Call every implementation of *hook_name*, one at a time.

        ``get_hookimpls()`` lists implementations in registration order;
        pluggy's own call loop would run them newest-first, so they are
        called here directly. Each one gets only the keyword fields it
        declares.
        """
        impls = getattr(self._pm.hook, hook_name).get_hookimpls()
        ordered = impls[::-1] if reverse else impls
        for impl in ordered:
            kwargs = {arg: payload[arg] for arg in impl.argnames}
            try:
                impl.function(**kwargs)
            except Exception:
                logger.warning(
                    "Plugin %s failed in %s", impl.plugin_name, hook_name, exc_info=True
                )

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _swap_class_for_instance(self, cls: type) -> None:
        # Entry points usually name a class; its hooks need a bound ``self``.
        if not self._has_hook_impls(cls):
            return
        label = self._pm.get_name(cls) or cls.__name__
        self._pm.unregister(cls)
        try:
            plugin = cls()
        except Exception:
            logger.warning("Could not construct plugin %s; skipped", label, exc_info=True)
            return
        self._pm.register(plugin, name=label)
        logger.debug("Constructed entry-point plugin: %s", label)

    @staticmethod
    def _has_hook_impls(cls: type) -> bool:
        """True when some public attribute of *cls* is marked ``@hookimpl``."""
        marker = f"{PROJECT_NAME}_impl"
        return any(
            getattr(member, marker, None) is not None
            for attr, member in inspect.getmembers(cls, callable)
            if not attr.startswith("_")
        )
