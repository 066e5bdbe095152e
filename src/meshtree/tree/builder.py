"""Build tree nodes from filesystem plugins.

Each enabled plugin becomes a root node named after it.  Expanding a
directory calls the plugin's ``get_directories`` and ``get_files`` for that
directory only (never recursively) on a worker thread, wraps the results as
nodes with their own loaders, and sorts them directories-first.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Iterable

from meshtree.exceptions import TreeLoadError
from meshtree.plugins.protocol import FileSystemPlugin, SearchScope
from meshtree.tree.logic import sort_tree_nodes
from meshtree.tree.node import TreeNode
from meshtree.tree.validation import (
    create_directory_node_spec,
    create_file_node_spec,
    validate_plugin_root,
)

logger = logging.getLogger(__name__)

ROOT_PATH = "/"


def build_plugin_roots(plugins: Iterable[FileSystemPlugin | None]) -> list[TreeNode]:
    """One root node per enabled plugin, in the order given."""
    roots: list[TreeNode] = []
    for plugin in plugins:
        result = validate_plugin_root(plugin.name if plugin is not None else None, plugin)
        if not result.success:
            logger.warning("Skipping plugin root: %s", result.error_message)
            continue
        assert plugin is not None
        if not plugin.is_enabled:
            logger.debug("Skipping disabled plugin %s", plugin.name)
            continue
        roots.append(
            TreeNode(
                result.node_name,
                ROOT_PATH,
                is_directory=True,
                plugin=plugin,
                children_loader=functools.partial(build_directory_children, plugin, ROOT_PATH),
            )
        )
    return roots


def create_directory_node(plugin: FileSystemPlugin, directory_path: str) -> TreeNode | None:
    """Directory node with a loader bound to *directory_path*, or None if invalid."""
    result = create_directory_node_spec(directory_path, plugin)
    if not result.success:
        logger.debug("Skipping directory %r: %s", directory_path, result.error_message)
        return None
    return TreeNode(
        result.node_name,
        directory_path,
        is_directory=True,
        plugin=plugin,
        children_loader=functools.partial(build_directory_children, plugin, directory_path),
    )


def create_file_node(plugin: FileSystemPlugin, file_path: str) -> TreeNode | None:
    result = create_file_node_spec(file_path, plugin)
    if not result.success:
        logger.debug("Skipping file %r: %s", file_path, result.error_message)
        return None
    return TreeNode(result.node_name, file_path, is_directory=False, plugin=plugin)


def _enumerate(plugin: FileSystemPlugin, directory_path: str) -> tuple[list[str], list[str]]:
    directories = list(plugin.get_directories(directory_path, "*", SearchScope.TOP_DIRECTORY_ONLY))
    files = list(plugin.get_files(directory_path, "*", SearchScope.TOP_DIRECTORY_ONLY))
    return directories, files


async def build_directory_children(plugin: FileSystemPlugin, directory_path: str) -> list[TreeNode]:
    """Enumerate one directory level of *plugin* and return sorted child nodes.

    Raises:
        TreeLoadError: The plugin failed to enumerate *directory_path*.
    """
    try:
        directories, files = await asyncio.to_thread(_enumerate, plugin, directory_path)
    except Exception as e:
        raise TreeLoadError(
            f"Could not list {directory_path} in {plugin.name}: {e}",
            path=directory_path,
            plugin_name=plugin.name,
        ) from e

    nodes = [create_directory_node(plugin, d) for d in directories]
    nodes += [create_file_node(plugin, f) for f in files]
    children = sort_tree_nodes(n for n in nodes if n is not None)
    logger.debug(
        "%s:%s -> %d directories, %d files", plugin.name, directory_path, len(directories), len(files)
    )
    return children
