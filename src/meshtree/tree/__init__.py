"""Lazily expanded tree over the enabled filesystem plugins."""

from meshtree.tree.builder import (
    build_directory_children,
    build_plugin_roots,
    create_directory_node,
    create_file_node,
)
from meshtree.tree.logic import (
    combine_path,
    get_leaf_name,
    get_node_sort_priority,
    get_parent_path,
    is_root_or_empty,
    normalize_path,
    safe_string,
    sort_tree_nodes,
)
from meshtree.tree.node import TreeNode
from meshtree.tree.sources import SourcesTree

__all__ = [
    "SourcesTree",
    "TreeNode",
    "build_directory_children",
    "build_plugin_roots",
    "combine_path",
    "create_directory_node",
    "create_file_node",
    "get_leaf_name",
    "get_node_sort_priority",
    "get_parent_path",
    "is_root_or_empty",
    "normalize_path",
    "safe_string",
    "sort_tree_nodes",
]
