"""ConversationPlugin — chat conversations with an AI provider, exposed as files.

Layout::

    /conversations/<id>/001.txt     one file per message, 1-based
    /models/<model>.txt             one file per available model

Reading a message file returns ``[<timestamp>] <role>: <content>``.  Writing
any file under ``/conversations/<id>/`` sends its contents as a user message:
the provider sees the conversation history plus the new message, and on
success both the user message and the reply are appended.  ``new`` as the
conversation id starts a fresh conversation.

The provider itself is reached through a :class:`ChatTransport` passed in at
construction; without one (or without an API key) the plugin stays
unauthorized and the manager disables it.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol, runtime_checkable

from meshtree.config import Settings
from meshtree.exceptions import PathNotFoundError, PathSecurityError, PluginError
from meshtree.fs.security import SecurityViolation, is_secure_path
from meshtree.fs.utils import matches_pattern
from meshtree.plugins.protocol import ConnectionResult, PluginInfo, SearchScope

logger = logging.getLogger(__name__)

CONVERSATIONS_DIR = "conversations"
MODELS_DIR = "models"
NEW_CONVERSATION = "new"


@dataclass(frozen=True, slots=True)
class ChatMessage:
    """A single message in a conversation."""

    role: str
    content: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def render(self) -> str:
        return f"[{self.timestamp:%Y-%m-%d %H:%M:%SZ}] {self.role}: {self.content}"


@runtime_checkable
class ChatTransport(Protocol):
    """Sends messages to a chat provider.  Implementations may block."""

    def send(self, api_key: str, history: Sequence[ChatMessage], message: str) -> str:
        """Return the assistant's reply to *message* given *history*."""
        ...

    def list_models(self, api_key: str) -> list[str]:
        """Return the model identifiers the provider offers."""
        ...


class ConversationPlugin:
    """Filesystem view over chat conversations.

    Args:
        info: Identity of the provider, e.g. ``PluginInfo(name="Claude")``.
        transport: Sends messages to the provider.
        api_key: Provider key.  When omitted, *credentials* is consulted.
        credentials: Callable returning the key on demand.  Failures are
            logged and treated as "no key".
    """

    def __init__(
        self,
        info: PluginInfo,
        transport: ChatTransport | None = None,
        *,
        api_key: str | None = None,
        credentials: Callable[[], str | None] | None = None,
    ) -> None:
        self._info = info
        self._transport = transport
        self._api_key = api_key
        self._credentials = credentials
        self._conversations: dict[str, list[ChatMessage]] = {}
        self._models: list[str] = []
        self._lock = threading.Lock()
        self.is_enabled = True

    @property
    def name(self) -> str:
        return self._info.name

    @property
    def version(self) -> str:
        return self._info.version

    @property
    def description(self) -> str:
        return self._info.description

    @property
    def author(self) -> str:
        return self._info.author

    # ------------------------------------------------------------------
    # Authorization & lifecycle
    # ------------------------------------------------------------------

    def _resolve_api_key(self) -> str | None:
        if self._api_key:
            return self._api_key
        if self._credentials is None:
            return None
        try:
            return self._credentials() or None
        except Exception:
            logger.warning("Credential lookup failed for %s", self.name, exc_info=True)
            return None

    def has_valid_authorization(self) -> bool:
        return self._transport is not None and bool(self._resolve_api_key())

    async def test_connection(self) -> ConnectionResult:
        if not self._resolve_api_key():
            return ConnectionResult(False, "Invalid - Missing or invalid credentials")
        if self._transport is None:
            return ConnectionResult(False, "No chat transport configured")
        return ConnectionResult(True, "Valid - Plugin enabled")

    async def initialize(self) -> None:
        """Fetch the model list.  Failure leaves it empty."""
        api_key = self._resolve_api_key()
        if self._transport is None or not api_key:
            return
        try:
            models = list(self._transport.list_models(api_key))
        except Exception:
            logger.warning("Could not list models for %s", self.name, exc_info=True)
            return
        with self._lock:
            self._models = models

    def dispose(self) -> None:
        with self._lock:
            self._conversations.clear()
            self._models = []

    # ------------------------------------------------------------------
    # Conversations
    # ------------------------------------------------------------------

    def conversation_ids(self) -> list[str]:
        with self._lock:
            return list(self._conversations)

    def get_messages(self, conversation_id: str) -> list[ChatMessage]:
        with self._lock:
            return list(self._conversations.get(conversation_id, ()))

    def send_message(self, conversation_id: str, message: str) -> tuple[str, str]:
        """Send *message* and record the exchange.

        Returns ``(conversation_id, reply)``; the id differs from the
        argument when a new conversation was started.  Nothing is recorded
        if the provider call fails.
        """
        api_key = self._resolve_api_key()
        if self._transport is None or not api_key:
            raise PluginError(f"{self.name} is not authorized")

        if not conversation_id or conversation_id == NEW_CONVERSATION:
            conversation_id = uuid.uuid4().hex

        history = self.get_messages(conversation_id)
        reply = self._transport.send(api_key, history, message)

        with self._lock:
            messages = self._conversations.setdefault(conversation_id, [])
            messages.append(ChatMessage(role="user", content=message))
            messages.append(ChatMessage(role="assistant", content=reply))
        logger.debug("%s conversation %s now has %d messages", self.name, conversation_id, len(messages))
        return conversation_id, reply

    # ------------------------------------------------------------------
    # Path parsing
    # ------------------------------------------------------------------

    @staticmethod
    def _parts(path: str | None) -> list[str]:
        if not is_secure_path(path):
            raise PathSecurityError("Path escapes the allowed root.", SecurityViolation.PATH_ESCAPES_ROOT)
        normalized = (path or "").replace("\\", "/")
        return [p for p in normalized.split("/") if p and p != "."]

    @staticmethod
    def _message_index(filename: str) -> int | None:
        stem, dot, ext = filename.partition(".")
        if dot and ext == "txt" and stem.isdigit():
            return int(stem)
        return None

    def _find_message(self, parts: list[str]) -> ChatMessage | None:
        if len(parts) != 3 or parts[0] != CONVERSATIONS_DIR:
            return None
        index = self._message_index(parts[2])
        if index is None:
            return None
        messages = self.get_messages(parts[1])
        if 1 <= index <= len(messages):
            return messages[index - 1]
        return None

    def _find_model(self, parts: list[str]) -> str | None:
        if len(parts) != 2 or parts[0] != MODELS_DIR or not parts[1].endswith(".txt"):
            return None
        model = parts[1][: -len(".txt")]
        with self._lock:
            return model if model in self._models else None

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def file_exists(self, path: str) -> bool:
        parts = self._parts(path)
        return self._find_message(parts) is not None or self._find_model(parts) is not None

    def read_file(self, path: str) -> str:
        parts = self._parts(path)
        message = self._find_message(parts)
        if message is not None:
            return message.render()
        model = self._find_model(parts)
        if model is not None:
            return model
        raise PathNotFoundError(f"File not found: {path}")

    def read_file_bytes(self, path: str) -> bytes:
        return self.read_file(path).encode()

    def write_file(self, path: str, contents: str, overwrite: bool = True) -> None:
        parts = self._parts(path)
        if len(parts) != 3 or parts[0] != CONVERSATIONS_DIR:
            raise PermissionError(f"Only conversation messages can be written: {path}")
        self.send_message(parts[1], contents)

    def append_to_file(self, path: str, contents: str) -> None:
        self.write_file(path, contents)

    def delete_file(self, path: str) -> None:
        raise PermissionError(f"{self.name} messages cannot be deleted")

    def get_file_size(self, path: str) -> int:
        return len(self.read_file_bytes(path))

    # ------------------------------------------------------------------
    # Directories
    # ------------------------------------------------------------------

    def directory_exists(self, path: str) -> bool:
        parts = self._parts(path)
        if not parts:
            return True
        if parts[0] == CONVERSATIONS_DIR:
            if len(parts) == 1:
                return True
            if len(parts) == 2:
                with self._lock:
                    return parts[1] in self._conversations
            return False
        return parts == [MODELS_DIR]

    def create_directory(self, path: str) -> None:
        parts = self._parts(path)
        if len(parts) == 2 and parts[0] == CONVERSATIONS_DIR and parts[1] != NEW_CONVERSATION:
            with self._lock:
                self._conversations.setdefault(parts[1], [])
            return
        if not self.directory_exists(path):
            raise PermissionError(f"Cannot create directory: {path}")

    def delete_directory(self, path: str, recursive: bool = False) -> None:
        parts = self._parts(path)
        if len(parts) != 2 or parts[0] != CONVERSATIONS_DIR:
            raise PermissionError(f"Cannot delete directory: {path}")
        with self._lock:
            messages = self._conversations.get(parts[1])
            if messages is None:
                return
            if messages and not recursive:
                raise OSError(f"Conversation is not empty: {parts[1]}")
            del self._conversations[parts[1]]

    # ------------------------------------------------------------------
    # Enumeration
    # ------------------------------------------------------------------

    def _top_directories(self, parts: list[str]) -> list[str]:
        if not parts:
            return [CONVERSATIONS_DIR, MODELS_DIR]
        if parts == [CONVERSATIONS_DIR]:
            return [f"{CONVERSATIONS_DIR}/{cid}" for cid in self.conversation_ids()]
        return []

    def _top_files(self, parts: list[str]) -> list[str]:
        if parts == [MODELS_DIR]:
            with self._lock:
                return [f"{MODELS_DIR}/{model}.txt" for model in self._models]
        if len(parts) == 2 and parts[0] == CONVERSATIONS_DIR:
            count = len(self.get_messages(parts[1]))
            return [f"{CONVERSATIONS_DIR}/{parts[1]}/{i:03d}.txt" for i in range(1, count + 1)]
        return []

    def _enumerate(
        self, directory_path: str, search_pattern: str, scope: SearchScope, *, directories: bool
    ) -> list[str]:
        pending = [self._parts(directory_path)]
        found: list[str] = []
        while pending:
            parts = pending.pop(0)
            subdirs = self._top_directories(parts)
            entries = subdirs if directories else self._top_files(parts)
            found.extend(e for e in entries if matches_pattern(e.rsplit("/", 1)[-1], search_pattern))
            if scope is SearchScope.ALL_DIRECTORIES:
                pending.extend(d.split("/") for d in subdirs)
        return found

    def get_files(
        self,
        directory_path: str,
        search_pattern: str = "*",
        scope: SearchScope = SearchScope.TOP_DIRECTORY_ONLY,
    ) -> list[str]:
        return self._enumerate(directory_path, search_pattern, scope, directories=False)

    def get_directories(
        self,
        directory_path: str,
        search_pattern: str = "*",
        scope: SearchScope = SearchScope.TOP_DIRECTORY_ONLY,
    ) -> list[str]:
        return self._enumerate(directory_path, search_pattern, scope, directories=True)

    def get_children(
        self,
        directory_path: str,
        search_pattern: str = "*",
        scope: SearchScope = SearchScope.ALL_DIRECTORIES,
    ) -> list[str]:
        return [
            *self.get_directories(directory_path, search_pattern, scope),
            *self.get_files(directory_path, search_pattern, scope),
        ]

    def __repr__(self) -> str:
        return f"ConversationPlugin(name={self.name!r})"


# =============================================================================
# Factories
# =============================================================================


def conversation_factory(
    info: PluginInfo, provider: str | None = None
) -> Callable[..., ConversationPlugin]:
    """Build a registry factory for a provider.

    The returned factory takes ``settings`` and ``transport`` from the
    resolver and reads the API key from ``settings.api_key(provider)``
    (``provider`` defaults to the plugin name).  Register it with an
    explicit key since every factory built here shares a qualified name::

        registry.register(conversation_factory(PluginInfo(name="Claude")), key="claude")
    """
    provider = provider or info.name

    def factory(
        settings: Settings | None = None, transport: ChatTransport | None = None
    ) -> ConversationPlugin:
        resolved = settings or Settings.from_env()
        return ConversationPlugin(
            info, transport, credentials=lambda: resolved.api_key(provider)
        )

    return factory
