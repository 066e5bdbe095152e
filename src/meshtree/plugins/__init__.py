"""Plugin contract, discovery and the built-in backends."""

from meshtree.plugins.conversations import ChatMessage, ChatTransport, ConversationPlugin, conversation_factory
from meshtree.plugins.local import LocalFolderPlugin, create_local_plugin, create_vault_plugin
from meshtree.plugins.manager import PluginManager, PluginState, PluginStatus
from meshtree.plugins.notes import NotesPlugin
from meshtree.plugins.protocol import ConnectionResult, FileSystemPlugin, Plugin, PluginInfo, SearchScope
from meshtree.plugins.registry import PluginRegistration, PluginRegistry
from meshtree.plugins.resolver import ServiceResolver

__all__ = [
    "ChatMessage",
    "ChatTransport",
    "ConnectionResult",
    "ConversationPlugin",
    "FileSystemPlugin",
    "LocalFolderPlugin",
    "NotesPlugin",
    "Plugin",
    "PluginInfo",
    "PluginManager",
    "PluginRegistration",
    "PluginRegistry",
    "PluginState",
    "PluginStatus",
    "SearchScope",
    "ServiceResolver",
    "conversation_factory",
    "create_local_plugin",
    "create_vault_plugin",
]
