"""TreeNode — one entry in the navigable tree, with lazily loaded children."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from meshtree.plugins.protocol import FileSystemPlugin

logger = logging.getLogger(__name__)

ChildrenLoader = Callable[[], Awaitable[Sequence["TreeNode"]]]
"""Zero-argument coroutine function returning a directory's children."""

ChildrenListener = Callable[["TreeNode"], None]


class TreeNode:
    """A file or directory as shown in the tree.

    ``children`` is ``None`` until :meth:`ensure_children_loaded` first
    succeeds and never changes afterwards.  Concurrent calls share a single
    load.  If the loader raises or the awaiting task is cancelled the cache
    stays unset and the next call retries.

    Nodes must be used from a single event loop.  ``plugin`` is a reference
    for the UI; the node never disposes it.
    """

    def __init__(
        self,
        name: str,
        full_path: str,
        is_directory: bool,
        *,
        plugin: FileSystemPlugin | None = None,
        children_loader: ChildrenLoader | None = None,
    ) -> None:
        self._name = name
        self._full_path = full_path
        self._is_directory = is_directory
        self._plugin = plugin
        self._children_loader = children_loader if is_directory else None
        self._children: tuple[TreeNode, ...] | None = None
        self._load_lock: asyncio.Lock | None = None
        self._listeners: list[ChildrenListener] = []
        self.is_expanded = False

    @property
    def name(self) -> str:
        return self._name

    @property
    def full_path(self) -> str:
        return self._full_path

    @property
    def is_directory(self) -> bool:
        return self._is_directory

    @property
    def plugin(self) -> FileSystemPlugin | None:
        return self._plugin

    @property
    def children(self) -> tuple[TreeNode, ...] | None:
        return self._children

    @property
    def is_loaded(self) -> bool:
        return self._children is not None

    @property
    def can_expand(self) -> bool:
        return self._children_loader is not None

    def add_listener(self, listener: ChildrenListener) -> None:
        """Call *listener* with this node once its children are loaded."""
        self._listeners.append(listener)

    def remove_listener(self, listener: ChildrenListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def ensure_children_loaded(self) -> tuple[TreeNode, ...]:
        """Return the children, running the loader at most once."""
        if self._children is not None:
            return self._children
        if self._children_loader is None:
            return ()

        if self._load_lock is None:
            self._load_lock = asyncio.Lock()

        async with self._load_lock:
            if self._children is not None:
                return self._children
            loaded = tuple(await self._children_loader())
            self._children = loaded

        logger.debug("Loaded %d children for %s", len(loaded), self._full_path)
        self._notify()
        return loaded

    async def expand(self) -> tuple[TreeNode, ...]:
        """Load children and mark the node expanded."""
        children = await self.ensure_children_loaded()
        self.is_expanded = True
        return children

    def collapse(self) -> None:
        self.is_expanded = False

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.warning("Children listener failed for %s", self._full_path, exc_info=True)

    def __repr__(self) -> str:
        kind = "dir" if self._is_directory else "file"
        return f"TreeNode({self._name!r}, {self._full_path!r}, {kind})"
