"""Tests for ConversationPlugin — chat conversations as files."""

from __future__ import annotations

from collections.abc import Sequence

import pytest

from meshtree.config import Settings
from meshtree.exceptions import PathNotFoundError, PathSecurityError, PluginError
from meshtree.plugins.conversations import (
    ChatMessage,
    ChatTransport,
    ConversationPlugin,
    conversation_factory,
)
from meshtree.plugins.manager import PluginManager, PluginState
from meshtree.plugins.protocol import FileSystemPlugin, PluginInfo, SearchScope
from meshtree.plugins.resolver import ServiceResolver

# =========================================================================
# Helpers
# =========================================================================


class RecordingTransport:
    """Echoes messages back and records what it was sent."""

    def __init__(self, models: list[str] | None = None, fail: bool = False) -> None:
        self.models = models if models is not None else ["model-a", "model-b"]
        self.fail = fail
        self.sent: list[tuple[str, list[ChatMessage], str]] = []

    def send(self, api_key: str, history: Sequence[ChatMessage], message: str) -> str:
        if self.fail:
            raise ConnectionError("provider down")
        self.sent.append((api_key, list(history), message))
        return f"echo: {message}"

    def list_models(self, api_key: str) -> list[str]:
        return self.models


INFO = PluginInfo(name="Claude", description="Anthropic Claude")


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
async def chat(transport) -> ConversationPlugin:
    plugin = ConversationPlugin(INFO, transport, api_key="sk-test")
    await plugin.initialize()
    return plugin


# =========================================================================
# Authorization
# =========================================================================


class TestAuthorization:
    def test_protocols(self, transport):
        plugin = ConversationPlugin(INFO, transport, api_key="k")
        assert isinstance(plugin, FileSystemPlugin)
        assert isinstance(transport, ChatTransport)

    async def test_valid(self, chat):
        assert chat.has_valid_authorization()
        assert await chat.test_connection() == (True, "Valid - Plugin enabled")

    async def test_missing_key(self, transport):
        plugin = ConversationPlugin(INFO, transport)
        assert not plugin.has_valid_authorization()
        result = await plugin.test_connection()
        assert result == (False, "Invalid - Missing or invalid credentials")

    async def test_missing_transport(self):
        plugin = ConversationPlugin(INFO, api_key="k")
        assert not plugin.has_valid_authorization()
        assert (await plugin.test_connection()).success is False

    def test_credentials_callable(self, transport):
        plugin = ConversationPlugin(INFO, transport, credentials=lambda: "from-store")
        assert plugin.has_valid_authorization()

    def test_failing_credentials_callable(self, transport):
        def _broken() -> str:
            raise KeyError("keychain locked")

        plugin = ConversationPlugin(INFO, transport, credentials=_broken)
        assert not plugin.has_valid_authorization()


# =========================================================================
# Messaging
# =========================================================================


class TestMessaging:
    async def test_new_conversation(self, chat, transport):
        conversation_id, reply = chat.send_message("new", "hello")

        assert conversation_id != "new"
        assert reply == "echo: hello"
        messages = chat.get_messages(conversation_id)
        assert [(m.role, m.content) for m in messages] == [
            ("user", "hello"),
            ("assistant", "echo: hello"),
        ]
        assert transport.sent == [("sk-test", [], "hello")]

    async def test_history_is_sent(self, chat, transport):
        cid, _ = chat.send_message("new", "first")
        chat.send_message(cid, "second")
        _, history, message = transport.sent[-1]
        assert [m.content for m in history] == ["first", "echo: first"]
        assert message == "second"

    async def test_write_file_sends(self, chat):
        chat.write_file("conversations/abc/next.txt", "hi")
        assert chat.get_files("conversations/abc") == [
            "conversations/abc/001.txt",
            "conversations/abc/002.txt",
        ]

    async def test_failed_send_records_nothing(self):
        plugin = ConversationPlugin(INFO, RecordingTransport(fail=True), api_key="k")
        with pytest.raises(ConnectionError):
            plugin.send_message("abc", "hello")
        assert plugin.get_messages("abc") == []

    async def test_unauthorized_send(self):
        plugin = ConversationPlugin(INFO, api_key="k")
        with pytest.raises(PluginError):
            plugin.send_message("new", "hello")


# =========================================================================
# Filesystem view
# =========================================================================


class TestFilesystemView:
    async def test_root_directories(self, chat):
        assert chat.get_directories("/") == ["conversations", "models"]
        assert chat.directory_exists("/")
        assert chat.directory_exists("conversations")
        assert chat.directory_exists("models")

    async def test_models(self, chat):
        assert chat.get_files("models") == ["models/model-a.txt", "models/model-b.txt"]
        assert chat.read_file("models/model-a.txt") == "model-a"

    async def test_read_message(self, chat):
        cid, _ = chat.send_message("new", "hello")
        text = chat.read_file(f"/conversations/{cid}/001.txt")
        assert text.endswith("] user: hello")
        assert text.startswith("[")
        assert chat.file_exists(f"conversations/{cid}/002.txt")
        assert not chat.file_exists(f"conversations/{cid}/003.txt")

    async def test_read_missing(self, chat):
        with pytest.raises(PathNotFoundError):
            chat.read_file("conversations/none/001.txt")

    async def test_traversal_rejected(self, chat):
        with pytest.raises(PathSecurityError):
            chat.read_file("conversations/../../etc/passwd")

    async def test_recursive_listing(self, chat):
        cid, _ = chat.send_message("new", "hello")
        files = chat.get_files("/", "*.txt", SearchScope.ALL_DIRECTORIES)
        assert set(files) == {
            f"conversations/{cid}/001.txt",
            f"conversations/{cid}/002.txt",
            "models/model-a.txt",
            "models/model-b.txt",
        }
        assert chat.get_directories("/", scope=SearchScope.ALL_DIRECTORIES) == [
            "conversations",
            "models",
            f"conversations/{cid}",
        ]

    async def test_create_and_delete_conversation(self, chat):
        chat.create_directory("conversations/draft")
        assert chat.directory_exists("conversations/draft")
        chat.delete_directory("conversations/draft")
        assert not chat.directory_exists("conversations/draft")

    async def test_delete_non_empty_conversation(self, chat):
        cid, _ = chat.send_message("new", "hello")
        with pytest.raises(OSError):
            chat.delete_directory(f"conversations/{cid}")
        chat.delete_directory(f"conversations/{cid}", recursive=True)
        assert cid not in chat.conversation_ids()

    async def test_read_only_areas(self, chat):
        with pytest.raises(PermissionError):
            chat.write_file("models/x.txt", "nope")
        with pytest.raises(PermissionError):
            chat.delete_file("models/model-a.txt")

    async def test_dispose_clears_state(self, chat):
        chat.send_message("new", "hello")
        chat.dispose()
        chat.dispose()
        assert chat.conversation_ids() == []
        assert chat.get_files("models") == []


# =========================================================================
# Factory
# =========================================================================


class TestFactory:
    async def test_loaded_through_manager(self, registry, transport):
        resolver = ServiceResolver()
        resolver.register_instance(Settings, Settings(api_keys={"claude": "sk"}))
        resolver.register_instance(ChatTransport, transport)
        registry.register(conversation_factory(INFO), key="claude")

        with PluginManager(resolver, registry) as manager:
            await manager.load_plugins()
            plugin = manager.get_plugin("Claude")
            assert plugin is not None
            assert manager.get_status("Claude").state is PluginState.ENABLED
            assert plugin.get_files("models") == ["models/model-a.txt", "models/model-b.txt"]

    async def test_disabled_without_transport(self, registry):
        resolver = ServiceResolver()
        resolver.register_instance(Settings, Settings(api_keys={"claude": "sk"}))
        registry.register(conversation_factory(INFO), key="claude")

        with PluginManager(resolver, registry) as manager:
            await manager.load_plugins()
            status = manager.get_status("Claude")
            assert status.state is PluginState.DISABLED
            assert status.message == "No chat transport configured"

    def test_provider_key_lookup(self, transport):
        factory = conversation_factory(PluginInfo(name="GPT"), provider="openai")
        plugin = factory(Settings(api_keys={"openai": "sk"}), transport)
        assert plugin.has_valid_authorization()
