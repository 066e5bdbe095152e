"""PluginRegistry — the explicit list of plugin factories the manager may load."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from importlib import metadata
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "meshtree.plugins"


@dataclass(frozen=True, slots=True)
class PluginRegistration:
    """One loadable plugin: a factory plus the key it is registered under."""

    key: str
    """Stable identifier; the manager builds at most one instance per key."""

    factory: Callable[..., Any]
    """Class or function returning a plugin.  Parameters come from the resolver."""

    source: str = "builtin"
    """Where the registration came from: ``"builtin"``, ``"entry_point"`` or ``"manual"``."""


def factory_key(factory: Callable[..., Any]) -> str:
    """Default registration key: ``module.qualname`` of the factory."""
    module = getattr(factory, "__module__", None) or "<unknown>"
    qualname = getattr(factory, "__qualname__", None) or repr(factory)
    return f"{module}.{qualname}"


class PluginRegistry:
    """Ordered registry of plugin factories.

    Built-in backends are registered on construction unless
    ``include_builtins=False``.  Third-party backends are added with
    :meth:`register` or advertised through the ``meshtree.plugins``
    entry-point group and picked up by :meth:`load_entry_points`.
    """

    def __init__(self, *, include_builtins: bool = True) -> None:
        self._registrations: dict[str, PluginRegistration] = {}
        if include_builtins:
            self._register_builtins()

    def _register_builtins(self) -> None:
        from meshtree.plugins.local import create_local_plugin, create_vault_plugin
        from meshtree.plugins.notes import NotesPlugin

        self.register(create_local_plugin, source="builtin")
        self.register(create_vault_plugin, source="builtin")
        self.register(NotesPlugin, source="builtin")

    def register(
        self,
        factory: Callable[..., Any],
        *,
        key: str | None = None,
        source: str = "manual",
    ) -> PluginRegistration:
        """Add or replace the registration for *factory*."""
        registration = PluginRegistration(
            key=key or factory_key(factory), factory=factory, source=source
        )
        if registration.key in self._registrations:
            logger.debug("Replacing plugin registration %s", registration.key)
        self._registrations[registration.key] = registration
        return registration

    def unregister(self, key: str) -> bool:
        """Remove a registration.  Return True if it existed."""
        return self._registrations.pop(key, None) is not None

    def get(self, key: str) -> PluginRegistration | None:
        return self._registrations.get(key)

    def registrations(self) -> list[PluginRegistration]:
        """Registrations in insertion order."""
        return list(self._registrations.values())

    def __len__(self) -> int:
        return len(self._registrations)

    def __contains__(self, key: object) -> bool:
        return key in self._registrations

    def load_entry_points(self, group: str = ENTRY_POINT_GROUP) -> int:
        """Register every factory advertised under *group*.

        Entry points that fail to import are logged and skipped.  Returns the
        number of registrations added.
        """
        added = 0
        for entry_point in metadata.entry_points(group=group):
            try:
                factory = entry_point.load()
            except Exception:
                logger.warning(
                    "Failed to load plugin entry point %s", entry_point.value, exc_info=True
                )
                continue
            self.register(factory, key=f"{group}:{entry_point.name}", source="entry_point")
            added += 1
        if added:
            logger.info("Registered %d plugin(s) from entry points", added)
        return added
