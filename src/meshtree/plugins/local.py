"""LocalFolderPlugin — a sandboxed folder on the local disk.

Every caller-supplied path goes through :func:`require_secure_path` before
any I/O, so ``../`` sequences, absolute paths and NUL bytes never reach the
filesystem.  The resolved target is then re-checked with symlinks followed,
so a link inside the root cannot reach files outside it.  Recursive listings
do not descend into symlinked directories.  Enumeration results are relative to the plugin root with ``/``
separators (``"notes/todo.md"``), ready to be fed back into any operation.

Two factories are registered as built-ins: ``create_local_plugin`` ("Local
Files", rooted at a configurable folder) and ``create_vault_plugin``
("Obsidian", rooted at a vault and hiding its ``.obsidian``/``.trash``
folders).
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import tempfile
from collections.abc import Iterator
from pathlib import Path

from meshtree.config import Settings
from meshtree.exceptions import MeshTreeError, PathSecurityError
from meshtree.fs.security import (
    SecurityViolation,
    is_within_root,
    require_secure_path,
    to_relative_path,
)
from meshtree.fs.utils import matches_pattern
from meshtree.plugins.protocol import ConnectionResult, PluginInfo, SearchScope

logger = logging.getLogger(__name__)

LOCAL_FILES_INFO = PluginInfo(
    name="Local Files",
    version="0.1",
    description="Browse and edit files in a local folder",
)

OBSIDIAN_INFO = PluginInfo(
    name="Obsidian",
    version="0.1",
    description="Browse and edit notes in an Obsidian vault",
)

OBSIDIAN_IGNORED = frozenset({".obsidian", ".trash"})


class LocalFolderPlugin:
    """Filesystem plugin rooted at a local directory.

    Args:
        root: Directory every path is resolved against.  ``None`` or blank
            leaves the plugin unconfigured and unauthorized.
        info: Identity reported through ``name``/``version``/...
        ignore_names: Entry names hidden from enumeration at any depth.
        create_root: Create *root* on construction if it does not exist.
    """

    def __init__(
        self,
        root: str | Path | None,
        info: PluginInfo = LOCAL_FILES_INFO,
        *,
        ignore_names: frozenset[str] | set[str] = frozenset(),
        create_root: bool = True,
    ) -> None:
        self._info = info
        self._ignore = frozenset(ignore_names)
        self._disposed = False
        self.is_enabled = True

        if root is None or not str(root).strip():
            self._root: str | None = None
        else:
            self._root = os.path.abspath(os.path.expanduser(str(root)))
            if create_root:
                os.makedirs(self._root, exist_ok=True)

    # ------------------------------------------------------------------
    # Identity & lifecycle
    # ------------------------------------------------------------------

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

    @property
    def root(self) -> str | None:
        return self._root

    def has_valid_authorization(self) -> bool:
        return self._root is not None and os.path.isdir(self._root)

    async def test_connection(self) -> ConnectionResult:
        if self._root is None:
            return ConnectionResult(False, "No folder configured")
        if not await asyncio.to_thread(os.path.isdir, self._root):
            return ConnectionResult(False, f"Folder not found: {self._root}")
        try:
            await asyncio.to_thread(os.listdir, self._root)
        except OSError as e:
            return ConnectionResult(False, f"Cannot read folder: {e.strerror or e}")
        return ConnectionResult(True, f"Valid - {self._root}")

    async def initialize(self) -> None:
        logger.debug("%s plugin rooted at %s", self.name, self._root)

    def dispose(self) -> None:
        self._disposed = True

    # ------------------------------------------------------------------
    # Path resolution
    # ------------------------------------------------------------------

    def _resolve(self, path: str | None, *, ensure_parent: bool = False) -> str:
        if self._root is None:
            raise MeshTreeError(f"{self.name} has no folder configured")
        full_path = require_secure_path(self._root, path)
        # Symlinks inside the root must not lead out of it.
        if not is_within_root(os.path.realpath(self._root), os.path.realpath(full_path)):
            raise PathSecurityError(
                f"Path resolves outside {self.name}: {path}",
                SecurityViolation.PATH_ESCAPES_ROOT,
            )
        if ensure_parent:
            os.makedirs(os.path.dirname(full_path), exist_ok=True)
        return full_path

    def _relative(self, full_path: str) -> str:
        assert self._root is not None
        return to_relative_path(self._root, full_path)

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def file_exists(self, path: str) -> bool:
        return os.path.isfile(self._resolve(path))

    def read_file(self, path: str) -> str:
        return Path(self._resolve(path)).read_text(encoding="utf-8")

    def read_file_bytes(self, path: str) -> bytes:
        return Path(self._resolve(path)).read_bytes()

    def write_file(self, path: str, contents: str, overwrite: bool = True) -> None:
        target = Path(self._resolve(path, ensure_parent=True))
        if target.is_dir():
            raise IsADirectoryError(f"Is a directory: {path}")
        if not overwrite and target.exists():
            raise FileExistsError(f"File already exists: {path}")

        fd, tmp_path = tempfile.mkstemp(dir=target.parent, prefix=".tmp_", suffix=target.suffix)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(contents)
                f.flush()
                os.fsync(f.fileno())
            Path(tmp_path).replace(target)
        except Exception:
            tmp = Path(tmp_path)
            if tmp.exists():
                tmp.unlink()
            raise

    def append_to_file(self, path: str, contents: str) -> None:
        with open(self._resolve(path, ensure_parent=True), "a", encoding="utf-8") as f:
            f.write(contents)

    def delete_file(self, path: str) -> None:
        full_path = self._resolve(path)
        if os.path.isfile(full_path):
            os.remove(full_path)

    def get_file_size(self, path: str) -> int:
        return os.path.getsize(self._resolve(path))

    # ------------------------------------------------------------------
    # Directories
    # ------------------------------------------------------------------

    def directory_exists(self, path: str) -> bool:
        return os.path.isdir(self._resolve(path))

    def create_directory(self, path: str) -> None:
        os.makedirs(self._resolve(path), exist_ok=True)

    def delete_directory(self, path: str, recursive: bool = False) -> None:
        full_path = self._resolve(path)
        if full_path == self._root:
            raise PermissionError(f"Cannot delete the root of {self.name}")
        if not os.path.isdir(full_path):
            return
        if recursive:
            shutil.rmtree(full_path)
        else:
            os.rmdir(full_path)

    # ------------------------------------------------------------------
    # Enumeration
    # ------------------------------------------------------------------

    def _walk(self, full_path: str, scope: SearchScope) -> Iterator[os.DirEntry[str]]:
        with os.scandir(full_path) as it:
            entries = [e for e in it if e.name not in self._ignore]
        for entry in entries:
            yield entry
            if scope is SearchScope.ALL_DIRECTORIES and entry.is_dir(follow_symlinks=False):
                yield from self._walk(entry.path, scope)

    def _enumerate(
        self, directory_path: str, search_pattern: str, scope: SearchScope, *, directories: bool
    ) -> list[str]:
        full_path = self._resolve(directory_path)
        if not os.path.isdir(full_path):
            return []
        return sorted(
            self._relative(entry.path)
            for entry in self._walk(full_path, scope)
            if entry.is_dir() == directories and matches_pattern(entry.name, search_pattern)
        )

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
        """Directories then files, without case-insensitive duplicates."""
        seen: set[str] = set()
        children: list[str] = []
        for path in (
            *self.get_directories(directory_path, search_pattern, scope),
            *self.get_files(directory_path, search_pattern, scope),
        ):
            key = path.casefold()
            if key not in seen:
                seen.add(key)
                children.append(path)
        return children

    def __repr__(self) -> str:
        return f"LocalFolderPlugin(name={self.name!r}, root={self._root!r})"


# =============================================================================
# Built-in factories
# =============================================================================


def create_local_plugin(settings: Settings | None = None) -> LocalFolderPlugin:
    """The "Local Files" plugin: ``settings.local_root``, or ``<data_dir>/files``."""
    settings = settings or Settings.from_env()
    root = settings.local_root or str(settings.data_dir / "files")
    return LocalFolderPlugin(root, LOCAL_FILES_INFO)


def create_vault_plugin(settings: Settings | None = None) -> LocalFolderPlugin:
    """The "Obsidian" plugin: the configured vault.  Unauthorized until it exists."""
    settings = settings or Settings.from_env()
    return LocalFolderPlugin(
        settings.obsidian_vault_path,
        OBSIDIAN_INFO,
        ignore_names=OBSIDIAN_IGNORED,
        create_root=False,
    )
