"""MeshTree: many content sources, one navigable tree.

Plugins expose local folders, note vaults, databases and chat providers as a
uniform virtual filesystem; the tree layer turns the enabled ones into a
lazily expanded, sorted hierarchy.
"""

__version__ = "0.1.0"

from meshtree.config import Settings
from meshtree.exceptions import (
    DependencyResolutionError,
    MeshTreeError,
    PathNotFoundError,
    PathSecurityError,
    PluginError,
    PluginLoadError,
    TreeLoadError,
)
from meshtree.fs.security import SecurePathResult, SecurityViolation, secure_combine
from meshtree.plugins.manager import PluginManager, PluginState, PluginStatus
from meshtree.plugins.protocol import (
    ConnectionResult,
    FileSystemPlugin,
    Plugin,
    PluginInfo,
    SearchScope,
)
from meshtree.plugins.registry import PluginRegistry
from meshtree.plugins.resolver import ServiceResolver
from meshtree.tree.node import TreeNode
from meshtree.tree.sources import SourcesTree

__all__ = [
    "ConnectionResult",
    "DependencyResolutionError",
    "FileSystemPlugin",
    "MeshTreeError",
    "PathNotFoundError",
    "PathSecurityError",
    "Plugin",
    "PluginError",
    "PluginInfo",
    "PluginLoadError",
    "PluginManager",
    "PluginRegistry",
    "PluginState",
    "PluginStatus",
    "SearchScope",
    "SecurePathResult",
    "SecurityViolation",
    "ServiceResolver",
    "Settings",
    "SourcesTree",
    "TreeLoadError",
    "TreeNode",
    "secure_combine",
]
