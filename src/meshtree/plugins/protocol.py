"""Plugin protocols — runtime-checkable interfaces.

``Plugin`` is the capability every backend provides (identity, authorization,
lifecycle).  ``FileSystemPlugin`` refines it with CRUD and enumeration over a
virtual path space rooted at ``"/"``.  Backends satisfy these structurally;
there is no base class to inherit from.

The filesystem operations are synchronous.  Callers that run on the event
loop (the tree builder) push them onto a worker thread.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple, Protocol, runtime_checkable


class SearchScope(str, Enum):
    """How far an enumeration descends below the requested directory."""

    TOP_DIRECTORY_ONLY = "top_directory_only"
    ALL_DIRECTORIES = "all_directories"


class ConnectionResult(NamedTuple):
    """Outcome of ``Plugin.test_connection``; ``message`` is user-facing."""

    success: bool
    message: str


@dataclass(frozen=True, slots=True)
class PluginInfo:
    """Static identity shared by every instance of a backend."""

    name: str
    version: str = "0.1"
    description: str = ""
    author: str = "meshtree"


@runtime_checkable
class Plugin(Protocol):
    """Core interface every backend must implement."""

    @property
    def name(self) -> str: ...

    @property
    def version(self) -> str: ...

    @property
    def description(self) -> str: ...

    @property
    def author(self) -> str: ...

    is_enabled: bool

    def has_valid_authorization(self) -> bool:
        """True if credentials/config suffice, or none are needed."""
        ...

    async def test_connection(self) -> ConnectionResult:
        """Exercise the backend for real and report ``(success, message)``."""
        ...

    async def initialize(self) -> None:
        """Called once after construction.  No-op if not needed."""
        ...

    def dispose(self) -> None:
        """Release resources.  Must be safe to call more than once."""
        ...


@runtime_checkable
class FileSystemPlugin(Plugin, Protocol):
    """A plugin exposing a hierarchical virtual namespace."""

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def file_exists(self, path: str) -> bool: ...

    def read_file(self, path: str) -> str: ...

    def read_file_bytes(self, path: str) -> bytes: ...

    def write_file(self, path: str, contents: str, overwrite: bool = True) -> None: ...

    def append_to_file(self, path: str, contents: str) -> None: ...

    def delete_file(self, path: str) -> None: ...

    # ------------------------------------------------------------------
    # Directories
    # ------------------------------------------------------------------

    def directory_exists(self, path: str) -> bool: ...

    def create_directory(self, path: str) -> None: ...

    def delete_directory(self, path: str, recursive: bool = False) -> None: ...

    # ------------------------------------------------------------------
    # Enumeration & info
    # ------------------------------------------------------------------

    def get_files(
        self,
        directory_path: str,
        search_pattern: str = "*",
        scope: SearchScope = SearchScope.TOP_DIRECTORY_ONLY,
    ) -> Iterable[str]: ...

    def get_directories(
        self,
        directory_path: str,
        search_pattern: str = "*",
        scope: SearchScope = SearchScope.TOP_DIRECTORY_ONLY,
    ) -> Iterable[str]: ...

    def get_children(
        self,
        directory_path: str,
        search_pattern: str = "*",
        scope: SearchScope = SearchScope.ALL_DIRECTORIES,
    ) -> Iterable[str]: ...

    def get_file_size(self, path: str) -> int: ...
