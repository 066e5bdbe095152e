"""PluginManager — discovers, initializes, authorizes and owns plugin instances.

Loading walks the :class:`PluginRegistry` in order and, for each
registration not yet loaded, builds the plugin through the
:class:`ServiceResolver`, awaits ``initialize()`` and ``test_connection()``,
then stores it by name.  A plugin that fails authorization is kept but
disabled.  A plugin that fails construction or initialization is logged and
skipped; the remaining registrations still load.

Lookups are synchronous and read a snapshot under a lock, so they are safe to
call from any thread while a load is in progress.  Loads and reloads are
serialized with an :class:`asyncio.Lock`.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass, replace
from enum import Enum
from typing import TYPE_CHECKING

from meshtree.exceptions import PluginLoadError
from meshtree.plugins.protocol import ConnectionResult, FileSystemPlugin, Plugin
from meshtree.plugins.registry import PluginRegistry
from meshtree.plugins.resolver import ServiceResolver

if TYPE_CHECKING:
    from types import TracebackType

    from meshtree.plugins.registry import PluginRegistration

logger = logging.getLogger(__name__)


class PluginState(str, Enum):
    """Where a loaded plugin stands."""

    ENABLED = "enabled"
    DISABLED = "disabled"
    DISPOSED = "disposed"


@dataclass(frozen=True, slots=True)
class PluginStatus:
    """Last known state of a plugin plus the user-facing message behind it."""

    name: str
    state: PluginState
    message: str = ""
    registration_key: str = ""


class PluginManager:
    """Owns every loaded plugin for the lifetime of the application.

    Usage::

        manager = PluginManager(resolver)
        await manager.load_plugins()
        for plugin in manager.get_filesystem_plugins():
            ...
        manager.dispose()
    """

    def __init__(
        self,
        resolver: ServiceResolver | None = None,
        registry: PluginRegistry | None = None,
    ) -> None:
        self._resolver = resolver or ServiceResolver()
        self._registry = registry if registry is not None else PluginRegistry()
        self._plugins: dict[str, Plugin] = {}
        self._statuses: dict[str, PluginStatus] = {}
        self._loaded_keys: set[str] = set()
        self._lock = threading.RLock()
        self._load_lock = asyncio.Lock()
        self._disposed = False

    @property
    def registry(self) -> PluginRegistry:
        return self._registry

    @property
    def resolver(self) -> ServiceResolver:
        return self._resolver

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load_plugins(self) -> None:
        """Load every registration that has not been loaded yet.

        Calling this again only picks up registrations added since the last
        call (or ones that failed to load).
        """
        async with self._load_lock:
            if self._disposed:
                logger.warning("load_plugins called on a disposed PluginManager")
                return

            pending = [
                r for r in self._registry.registrations() if r.key not in self._loaded_keys
            ]
            if not pending:
                return

            logger.info("Loading %d plugin(s)", len(pending))
            for registration in pending:
                loaded = await self._load(registration)
                if loaded is not None:
                    self._store(registration, *loaded)

            logger.info(
                "Plugins loaded: %d total, %d enabled",
                len(self._plugins),
                sum(1 for p in self.get_all_plugins() if p.is_enabled),
            )

    async def _load(self, registration: PluginRegistration) -> tuple[Plugin, PluginStatus] | None:
        """Build, initialize and authorize one plugin.  ``None`` on failure."""
        plugin: Plugin | None = None
        try:
            instance = self._resolver.create(registration.factory)
            if not isinstance(instance, Plugin):
                raise PluginLoadError(
                    f"{registration.key} produced {type(instance).__name__}, not a Plugin"
                )
            plugin = instance
            await plugin.initialize()
            status = await self._authorize(plugin, registration)
        except asyncio.CancelledError:
            if plugin is not None:
                self._dispose_plugin(plugin)
            raise
        except Exception:
            logger.error("Failed to load plugin %s", registration.key, exc_info=True)
            if plugin is not None:
                self._dispose_plugin(plugin)
            return None
        return plugin, status

    async def _authorize(self, plugin: Plugin, registration: PluginRegistration) -> PluginStatus:
        try:
            result = await plugin.test_connection()
        except Exception as e:
            logger.debug("test_connection raised for %s", plugin.name, exc_info=True)
            result = ConnectionResult(False, f"Connection test failed: {e}")

        if not (result.success and plugin.has_valid_authorization()):
            plugin.is_enabled = False
            logger.warning("Plugin %s disabled: %s", plugin.name, result.message)
            return PluginStatus(plugin.name, PluginState.DISABLED, result.message, registration.key)

        state = PluginState.ENABLED if plugin.is_enabled else PluginState.DISABLED
        logger.info("Plugin %s %s: %s", plugin.name, state.value, result.message)
        return PluginStatus(plugin.name, state, result.message, registration.key)

    def _store(self, registration: PluginRegistration, plugin: Plugin, status: PluginStatus) -> None:
        with self._lock:
            disposed = self._disposed
            existing = self._statuses.get(plugin.name)
            if disposed:
                collision = None
            elif existing is not None and existing.registration_key != registration.key:
                collision = existing.registration_key
            else:
                collision = None
                self._plugins[plugin.name] = plugin
                self._statuses[plugin.name] = status
            self._loaded_keys.add(registration.key)

        if disposed:
            logger.warning("Plugin %s finished loading after dispose; disposing it", plugin.name)
            self._dispose_plugin(plugin)
        elif collision is not None:
            logger.error(
                "Plugin name %r from %s is already taken by %s; skipping",
                plugin.name,
                registration.key,
                collision,
            )
            self._dispose_plugin(plugin)

    async def reload_plugin(self, name: str) -> Plugin | None:
        """Dispose the named plugin and rebuild it from its registration.

        Returns the new instance, or ``None`` if *name* is unknown or the
        rebuild failed.
        """
        if not name or not name.strip():
            return None

        async with self._load_lock:
            with self._lock:
                old = self._plugins.pop(name, None)
                status = self._statuses.pop(name, None)
                if status is not None:
                    self._loaded_keys.discard(status.registration_key)

            if old is None or status is None:
                logger.debug("reload_plugin: no plugin named %r", name)
                return None

            self._dispose_plugin(old)

            registration = self._registry.get(status.registration_key)
            if registration is None:
                logger.warning("Plugin %s is no longer registered; not reloading", name)
                return None

            loaded = await self._load(registration)
            if loaded is None:
                return None
            self._store(registration, *loaded)
            return self.get_plugin(loaded[0].name)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get_plugin(self, name: str) -> Plugin | None:
        if not name or not name.strip():
            return None
        with self._lock:
            return self._plugins.get(name)

    def get_all_plugins(self) -> tuple[Plugin, ...]:
        with self._lock:
            return tuple(self._plugins.values())

    def get_filesystem_plugins(self, *, enabled_only: bool = True) -> tuple[FileSystemPlugin, ...]:
        """Plugins implementing :class:`FileSystemPlugin`, in load order."""
        return tuple(
            p
            for p in self.get_all_plugins()
            if isinstance(p, FileSystemPlugin) and (p.is_enabled or not enabled_only)
        )

    def get_status(self, name: str) -> PluginStatus | None:
        with self._lock:
            return self._statuses.get(name)

    def get_all_statuses(self) -> tuple[PluginStatus, ...]:
        with self._lock:
            return tuple(self._statuses.values())

    # ------------------------------------------------------------------
    # Enable / disable
    # ------------------------------------------------------------------

    def enable_plugin(self, name: str) -> bool:
        return self._set_enabled(name, True)

    def disable_plugin(self, name: str) -> bool:
        return self._set_enabled(name, False)

    def _set_enabled(self, name: str, enabled: bool) -> bool:
        with self._lock:
            plugin = self._plugins.get(name) if name else None
            if plugin is None:
                return False
            plugin.is_enabled = enabled
            state = PluginState.ENABLED if enabled else PluginState.DISABLED
            self._statuses[name] = replace(self._statuses[name], state=state)
        logger.info("Plugin %s %s", name, state.value)
        return True

    # ------------------------------------------------------------------
    # Disposal
    # ------------------------------------------------------------------

    @staticmethod
    def _dispose_plugin(plugin: Plugin) -> None:
        try:
            plugin.dispose()
        except Exception:
            logger.warning("Error disposing plugin %s", plugin.name, exc_info=True)

    def dispose(self) -> None:
        """Dispose every plugin exactly once.  Further calls do nothing."""
        with self._lock:
            if self._disposed:
                return
            self._disposed = True
            plugins = list(self._plugins.values())
            self._plugins.clear()
            self._statuses = {
                name: replace(status, state=PluginState.DISPOSED)
                for name, status in self._statuses.items()
            }

        for plugin in plugins:
            self._dispose_plugin(plugin)
        logger.info("Disposed %d plugin(s)", len(plugins))

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    def __enter__(self) -> PluginManager:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.dispose()
