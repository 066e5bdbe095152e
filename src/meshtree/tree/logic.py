"""Pure helpers for tree display: leaf names, ordering and virtual path arithmetic.

Paths here are the ``/``-separated strings plugins hand back from
enumeration.  None of these functions raise; blank input degrades to a
neutral value.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol, TypeVar


class Sortable(Protocol):
    @property
    def name(self) -> str: ...

    @property
    def is_directory(self) -> bool: ...


S = TypeVar("S", bound=Sortable)


def safe_string(value: str | None) -> str:
    """``""`` for ``None`` or whitespace-only input, otherwise *value*."""
    if value is None or not value.strip():
        return ""
    return value


def get_leaf_name(path: str | None) -> str:
    """Last segment of *path*, ignoring trailing slashes.

    ``"/"`` (or any run of slashes) yields ``"/"``; blank input is returned
    as-is and ``None`` becomes ``""``.

    Examples:
        get_leaf_name("/folder/sub/file.txt") -> "file.txt"
        get_leaf_name("/folder/sub/") -> "sub"
        get_leaf_name("file.txt") -> "file.txt"
    """
    if path is None:
        return ""
    if not path.strip():
        return path

    trimmed = path.rstrip("/")
    if not trimmed:
        return "/"

    return trimmed[trimmed.rfind("/") + 1 :]


def get_node_sort_priority(is_directory: bool) -> int:
    """Directories sort before files."""
    return 0 if is_directory else 1


def node_sort_key(node: Sortable) -> tuple[int, str, str]:
    name = safe_string(node.name)
    # casefold for the user-visible order, raw name to keep it total
    return get_node_sort_priority(node.is_directory), name.casefold(), name


def sort_tree_nodes(nodes: Iterable[S]) -> list[S]:
    """Directories first, then case-insensitive by name.  Stable."""
    return sorted(nodes, key=node_sort_key)


def is_root_or_empty(path: str | None) -> bool:
    return path is None or not path.strip() or path.strip() == "/"


def normalize_path(path: str | None) -> str:
    """Strip trailing slashes.  Blank input and ``"/"`` become ``""``."""
    if path is None or not path.strip():
        return ""
    return path.rstrip("/")


def combine_path(parent: str | None, child: str | None) -> str:
    """Join *child* under *parent* with exactly one ``/``.

    Examples:
        combine_path("/folder", "file.txt") -> "/folder/file.txt"
        combine_path("/", "file.txt") -> "/file.txt"
        combine_path("", "file.txt") -> "/file.txt"
        combine_path("/folder/", "") -> "/folder"
    """
    if child is None or not child.strip():
        return normalize_path(parent)

    parent_norm = normalize_path(parent)
    if not parent_norm:
        return f"/{child}"
    return f"{parent_norm}/{child}"


def get_parent_path(path: str | None) -> str:
    """Parent of *path*, or ``"/"`` for top-level entries and blank input."""
    normalized = normalize_path(path)
    idx = normalized.rfind("/")
    if idx <= 0:
        return "/"
    return normalized[:idx]
