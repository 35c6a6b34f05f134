"""
Built-in plugins compiled into Jex.

The table is explicit: adding a built-in means adding a factory here. Built-ins
are consulted before the registry, so an installed plugin can never shadow
one of them.
"""

from __future__ import annotations

from typing import Callable, Mapping

from jex.plugins.base import Plugin, PluginHandle
from jex.plugins.scaffold import NewPluginCommand

PluginFactory = Callable[[], Plugin]

BUILTIN_PLUGINS: dict[str, PluginFactory] = {
    "new-plugin": NewPluginCommand,
}


class InternalPluginSet:
    """Fixed name to factory table of built-in plugins."""

    def __init__(self, factories: Mapping[str, PluginFactory] | None = None) -> None:
        self._factories = dict(BUILTIN_PLUGINS if factories is None else factories)

    def __contains__(self, name: object) -> bool:
        return name in self._factories

    def names(self) -> list[str]:
        return sorted(self._factories)

    def resolve(self, name: str) -> PluginHandle | None:
        """Instantiate the built-in registered under name, if any."""
        factory = self._factories.get(name)
        if factory is None:
            return None
        return PluginHandle(factory())

    def describe(self) -> list[tuple[str, str]]:
        """Return (name, description) pairs for listing."""
        return [
            (name, getattr(self._factories[name], "description", "") or "")
            for name in self.names()
        ]
