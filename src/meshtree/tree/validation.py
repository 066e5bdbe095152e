"""Node validation and bulk helpers used while building the tree.

These check display labels only: a path that passes here may still be
rejected by a backend's sandbox check.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, TypeVar

from meshtree.tree.logic import get_leaf_name, safe_string


class ValidationFailure(str, Enum):
    NONE = "none"
    EMPTY_PATH = "empty_path"
    INVALID_PATH = "invalid_path"
    NULL_PLUGIN = "null_plugin"
    INVALID_NAME = "invalid_name"


@dataclass(frozen=True, slots=True)
class NodeCreationResult:
    """Outcome of validating a node label."""

    success: bool
    node_name: str = ""
    error_message: str | None = None
    failure: ValidationFailure = ValidationFailure.NONE

    @classmethod
    def ok(cls, node_name: str) -> NodeCreationResult:
        return cls(success=True, node_name=node_name)

    @classmethod
    def fail(cls, failure: ValidationFailure, message: str, node_name: str = "") -> NodeCreationResult:
        return cls(success=False, node_name=node_name, error_message=message, failure=failure)


class BuildableNode(Protocol):
    @property
    def name(self) -> str: ...

    @property
    def is_directory(self) -> bool: ...

    @property
    def plugin(self) -> Any | None: ...


N = TypeVar("N", bound=BuildableNode)


def _has_control_chars(value: str) -> bool:
    return any(ord(ch) < 0x20 or ord(ch) == 0x7F for ch in value)


def validate_and_normalize_node(path: str | None) -> NodeCreationResult:
    """Derive a display name from *path*.

    ``..`` segments are not rejected here; ``"folder/.."`` yields ``".."``.
    """
    if path is None or not path.strip():
        return NodeCreationResult.fail(ValidationFailure.EMPTY_PATH, "Path cannot be empty")

    if _has_control_chars(path):
        return NodeCreationResult.fail(
            ValidationFailure.INVALID_PATH, f"Path contains control characters: {path!r}"
        )

    name = safe_string(get_leaf_name(path))
    if not name:
        return NodeCreationResult.fail(
            ValidationFailure.INVALID_NAME, f"Could not derive a name from {path!r}"
        )
    return NodeCreationResult.ok(name)


def create_directory_node_spec(path: str | None, plugin: object | None) -> NodeCreationResult:
    if plugin is None:
        return NodeCreationResult.fail(
            ValidationFailure.NULL_PLUGIN, "Plugin cannot be null for directory nodes"
        )
    return validate_and_normalize_node(path)


def create_file_node_spec(path: str | None, plugin: object | None) -> NodeCreationResult:
    if plugin is None:
        return NodeCreationResult.fail(
            ValidationFailure.NULL_PLUGIN, "Plugin cannot be null for file nodes"
        )
    return validate_and_normalize_node(path)


def validate_plugin_root(plugin_name: str | None, plugin: object | None) -> NodeCreationResult:
    if plugin is None:
        return NodeCreationResult.fail(ValidationFailure.NULL_PLUGIN, "Plugin instance cannot be null")
    name = safe_string(plugin_name)
    if not name:
        return NodeCreationResult.fail(ValidationFailure.INVALID_NAME, "Plugin name cannot be empty")
    return NodeCreationResult.ok(name)


def generate_node_description(node_type: str, node_name: str, plugin_name: str | None = None) -> str:
    """``"file: notes.md (Local Files)"``; the suffix is dropped without a plugin name."""
    description = f"{node_type}: {node_name}"
    if safe_string(plugin_name):
        description += f" ({plugin_name})"
    return description


def group_nodes_by_plugin(nodes: Iterable[N] | None) -> dict[str, list[N]]:
    """Group nodes by owning plugin name.  Nodes without a plugin are dropped."""
    groups: dict[str, list[N]] = {}
    for node in nodes or ():
        if node.plugin is None:
            continue
        groups.setdefault(node.plugin.name, []).append(node)
    return groups


def filter_nodes(
    nodes: Iterable[N] | None,
    search_term: str | None = None,
    *,
    include_directories: bool = True,
    include_files: bool = True,
) -> list[N]:
    """Case-insensitive substring match on node names, optionally by kind."""
    term = safe_string(search_term).strip().casefold()
    result = []
    for node in nodes or ():
        if node.is_directory and not include_directories:
            continue
        if not node.is_directory and not include_files:
            continue
        if term and term not in safe_string(node.name).casefold():
            continue
        result.append(node)
    return result


@dataclass(frozen=True, slots=True)
class TreeStatistics:
    total_nodes: int = 0
    directory_count: int = 0
    file_count: int = 0
    plugin_names: frozenset[str] = field(default_factory=frozenset)

    @property
    def plugin_count(self) -> int:
        return len(self.plugin_names)


def calculate_tree_statistics(nodes: Iterable[BuildableNode] | None) -> TreeStatistics:
    items = list(nodes or ())
    directories = sum(1 for n in items if n.is_directory)
    return TreeStatistics(
        total_nodes=len(items),
        directory_count=directories,
        file_count=len(items) - directories,
        plugin_names=frozenset(n.plugin.name for n in items if n.plugin is not None),
    )
