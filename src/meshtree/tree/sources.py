"""SourcesTree — the top of the tree: one root per enabled filesystem plugin."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from meshtree.tree.builder import build_plugin_roots

if TYPE_CHECKING:
    from meshtree.plugins.manager import PluginManager
    from meshtree.tree.node import TreeNode

logger = logging.getLogger(__name__)


class SourcesTree:
    """Root nodes built from a :class:`PluginManager`.

    Call :meth:`refresh` after loading, enabling, disabling or reloading
    plugins.  Refreshing replaces every root, discarding cached subtrees.
    """

    def __init__(self, plugin_manager: PluginManager) -> None:
        self._manager = plugin_manager
        self._roots: tuple[TreeNode, ...] = ()

    @property
    def roots(self) -> tuple[TreeNode, ...]:
        return self._roots

    def refresh(self) -> tuple[TreeNode, ...]:
        plugins = self._manager.get_filesystem_plugins(enabled_only=True)
        self._roots = tuple(build_plugin_roots(plugins))
        logger.info("Sources tree refreshed with %d root(s)", len(self._roots))
        return self._roots

    def find_root(self, plugin_name: str) -> TreeNode | None:
        for root in self._roots:
            if root.name == plugin_name:
                return root
        return None

    async def find_node(self, plugin_name: str, path: str) -> TreeNode | None:
        """Walk from a plugin root down to *path*, loading directories on the way.

        Segments are matched against child names exactly.  Returns None if
        any segment is missing.
        """
        node = self.find_root(plugin_name)
        for segment in (s for s in path.replace("\\", "/").split("/") if s):
            if node is None:
                return None
            children = await node.ensure_children_loaded()
            node = next((c for c in children if c.name == segment), None)
        return node
