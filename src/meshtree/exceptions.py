"""Custom exception hierarchy for meshtree."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from meshtree.fs.security import SecurityViolation


class MeshTreeError(Exception):
    """Base exception for all meshtree errors."""


class PathSecurityError(MeshTreeError, PermissionError):
    """Raised by a backend when a path fails the sandbox check.

    The pure helpers in :mod:`meshtree.fs.security` never raise; they return a
    ``SecurePathResult``.  Backends convert a failed result into this error.
    """

    def __init__(self, message: str, violation: SecurityViolation) -> None:
        super().__init__(message)
        self.violation = violation


class PathNotFoundError(MeshTreeError, FileNotFoundError):
    """Raised when a file or directory path does not exist in a backend."""


class PluginError(MeshTreeError):
    """Base exception for plugin lifecycle failures."""


class PluginLoadError(PluginError):
    """Raised when a plugin cannot be constructed or initialized."""


class DependencyResolutionError(PluginError):
    """Raised when the resolver cannot satisfy a factory parameter."""


class TreeLoadError(MeshTreeError):
    """Raised when a directory node's children could not be enumerated."""

    def __init__(self, message: str, path: str, plugin_name: str | None = None) -> None:
        super().__init__(message)
        self.path = path
        self.plugin_name = plugin_name
