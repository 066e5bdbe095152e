"""Shared fixtures for meshtree tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from meshtree.fs.utils import matches_pattern
from meshtree.plugins.protocol import ConnectionResult, PluginInfo, SearchScope
from meshtree.plugins.registry import PluginRegistry
from meshtree.plugins.resolver import ServiceResolver

if TYPE_CHECKING:
    from collections.abc import Callable


class FakePlugin:
    """In-memory filesystem plugin that records calls.

    ``tree`` maps a directory path to ``(directories, files)``, both lists of
    paths as the plugin would return them from enumeration.
    """

    def __init__(
        self,
        name: str = "Fake",
        tree: dict[str, tuple[list[str], list[str]]] | None = None,
        *,
        authorized: bool = True,
        message: str | None = None,
        listing_error: Exception | None = None,
        dispose_error: Exception | None = None,
    ) -> None:
        self._info = PluginInfo(name=name, description="fake")
        self.tree = tree or {}
        self.authorized = authorized
        self.message = message
        self.listing_error = listing_error
        self.dispose_error = dispose_error
        self.is_enabled = True
        self.initialized = False
        self.dispose_count = 0
        self.calls: list[tuple[str, str]] = []

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

    def has_valid_authorization(self) -> bool:
        return self.authorized

    async def test_connection(self) -> ConnectionResult:
        if self.authorized:
            return ConnectionResult(True, self.message or "Valid - Plugin enabled")
        return ConnectionResult(False, self.message or "Invalid - Missing or invalid credentials")

    async def initialize(self) -> None:
        self.initialized = True

    def dispose(self) -> None:
        self.dispose_count += 1
        if self.dispose_error is not None:
            raise self.dispose_error

    # -- filesystem ----------------------------------------------------

    def _listing(self, kind: str, directory_path: str, search_pattern: str) -> list[str]:
        self.calls.append((kind, directory_path))
        if self.listing_error is not None:
            raise self.listing_error
        dirs, files = self.tree.get(directory_path, ([], []))
        entries = dirs if kind == "get_directories" else files
        return [e for e in entries if matches_pattern(e.rsplit("/", 1)[-1], search_pattern)]

    def get_directories(
        self,
        directory_path: str,
        search_pattern: str = "*",
        scope: SearchScope = SearchScope.TOP_DIRECTORY_ONLY,
    ) -> list[str]:
        return self._listing("get_directories", directory_path, search_pattern)

    def get_files(
        self,
        directory_path: str,
        search_pattern: str = "*",
        scope: SearchScope = SearchScope.TOP_DIRECTORY_ONLY,
    ) -> list[str]:
        return self._listing("get_files", directory_path, search_pattern)

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

    def file_exists(self, path: str) -> bool:
        return any(path in files for _, files in self.tree.values())

    def read_file(self, path: str) -> str:
        if not self.file_exists(path):
            raise FileNotFoundError(path)
        return f"contents of {path}"

    def read_file_bytes(self, path: str) -> bytes:
        return self.read_file(path).encode()

    def write_file(self, path: str, contents: str, overwrite: bool = True) -> None:
        raise PermissionError("read-only")

    def append_to_file(self, path: str, contents: str) -> None:
        raise PermissionError("read-only")

    def delete_file(self, path: str) -> None:
        raise PermissionError("read-only")

    def directory_exists(self, path: str) -> bool:
        return path in self.tree

    def create_directory(self, path: str) -> None:
        raise PermissionError("read-only")

    def delete_directory(self, path: str, recursive: bool = False) -> None:
        raise PermissionError("read-only")

    def get_file_size(self, path: str) -> int:
        return len(self.read_file_bytes(path))


class BarePlugin:
    """A plugin that is not filesystem-capable."""

    def __init__(self, name: str = "Bare") -> None:
        self._name = name
        self.is_enabled = True
        self.dispose_count = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def version(self) -> str:
        return "1.0"

    @property
    def description(self) -> str:
        return ""

    @property
    def author(self) -> str:
        return "tests"

    def has_valid_authorization(self) -> bool:
        return True

    async def test_connection(self) -> ConnectionResult:
        return ConnectionResult(True, "ok")

    async def initialize(self) -> None:
        pass

    def dispose(self) -> None:
        self.dispose_count += 1


SAMPLE_TREE: dict[str, tuple[list[str], list[str]]] = {
    "/": (["docs", "Archive"], ["b.txt", "A.md", "a.txt"]),
    "docs": (["docs/drafts"], ["docs/readme.md"]),
    "docs/drafts": ([], ["docs/drafts/v1.md"]),
    "Archive": ([], []),
}


@pytest.fixture
def make_plugin() -> Callable[..., FakePlugin]:
    """Factory for :class:`FakePlugin` instances."""
    return FakePlugin


@pytest.fixture
def fake_plugin() -> FakePlugin:
    """A FakePlugin populated with :data:`SAMPLE_TREE`."""
    return FakePlugin("Fake", dict(SAMPLE_TREE))


@pytest.fixture
def registry() -> PluginRegistry:
    """Registry without the built-in backends."""
    return PluginRegistry(include_builtins=False)


@pytest.fixture
def resolver() -> ServiceResolver:
    return ServiceResolver()
