"""NotesPlugin — a virtual folder tree stored in a SQL database.

Files and directories are rows of :class:`~meshtree.models.notes.NoteEntry`
keyed by their normalized virtual path (``"/journal/2024.md"``).  Directories
are explicit rows; writing a file creates any missing ancestors.  Nothing
here touches the host filesystem apart from the SQLite database file, so
sandboxing is purely a matter of rejecting paths that climb above ``/``.

The engine is synchronous: the filesystem contract is synchronous and the
tree builder already runs enumeration on a worker thread.
"""

from __future__ import annotations

import asyncio
import errno
import logging
from datetime import UTC, datetime
from pathlib import Path

from sqlalchemy import func, text, update
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, col, create_engine, select

from meshtree.config import Settings
from meshtree.exceptions import PathNotFoundError, PathSecurityError
from meshtree.fs.security import SecurityViolation
from meshtree.fs.utils import escapes_root, matches_pattern, normalize_path, split_path, to_relative, validate_path
from meshtree.models.notes import NoteEntry
from meshtree.plugins.protocol import ConnectionResult, PluginInfo, SearchScope

logger = logging.getLogger(__name__)

NOTES_INFO = PluginInfo(
    name="Notes",
    version="0.1",
    description="Notes stored in a local database",
)


def _build_engine(url: str) -> Engine:
    parsed = make_url(url)
    kwargs: dict = {}
    if parsed.get_backend_name() == "sqlite":
        # Sessions are opened on worker threads
        kwargs["connect_args"] = {"check_same_thread": False}
        if parsed.database in (None, "", ":memory:"):
            kwargs["poolclass"] = StaticPool
    return create_engine(url, **kwargs)


class NotesPlugin:
    """Filesystem plugin backed by a SQL table.

    The database URL is taken from *database_url*, then
    ``settings.notes_database_url``, then defaults to
    ``sqlite:///<data_dir>/notes.db``.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        database_url: str | None = None,
    ) -> None:
        settings = settings or Settings.from_env()
        url = (
            database_url
            or settings.notes_database_url
            or f"sqlite:///{settings.data_dir / 'notes.db'}"
        )
        self._engine = _build_engine(url)
        self._disposed = False
        self.is_enabled = True

    @property
    def name(self) -> str:
        return NOTES_INFO.name

    @property
    def version(self) -> str:
        return NOTES_INFO.version

    @property
    def description(self) -> str:
        return NOTES_INFO.description

    @property
    def author(self) -> str:
        return NOTES_INFO.author

    @property
    def engine(self) -> Engine:
        return self._engine

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def has_valid_authorization(self) -> bool:
        return True

    async def test_connection(self) -> ConnectionResult:
        def _ping() -> None:
            with self._engine.connect() as conn:
                conn.execute(text("SELECT 1"))

        try:
            await asyncio.to_thread(_ping)
        except Exception as e:
            logger.debug("Notes database ping failed", exc_info=True)
            return ConnectionResult(False, f"Cannot reach notes database: {e}")
        return ConnectionResult(True, "Valid - Plugin enabled")

    async def initialize(self) -> None:
        await asyncio.to_thread(self._create_tables)

    def _create_tables(self) -> None:
        url = self._engine.url
        if url.get_backend_name() == "sqlite" and url.database not in (None, "", ":memory:"):
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)
        SQLModel.metadata.create_all(self._engine, tables=[NoteEntry.__table__])  # type: ignore[attr-defined]
        logger.debug("Notes tables ready at %s", url.render_as_string(hide_password=True))

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        self._engine.dispose()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _key(path: str | None) -> str:
        raw = path or "/"
        if escapes_root(raw.lstrip("/\\")):
            raise PathSecurityError("Path escapes the allowed root.", SecurityViolation.PATH_ESCAPES_ROOT)
        valid, error = validate_path(raw)
        if not valid:
            raise PathSecurityError(error, SecurityViolation.INVALID_PATH)
        return normalize_path(raw)

    @staticmethod
    def _get(session: Session, key: str) -> NoteEntry | None:
        return session.exec(select(NoteEntry).where(NoteEntry.path == key)).first()

    def _ensure_parents(self, session: Session, key: str) -> None:
        parent, _ = split_path(key)
        ancestors: list[str] = []
        while parent != "/":
            ancestors.append(parent)
            parent, _ = split_path(parent)

        for ancestor in reversed(ancestors):
            entry = self._get(session, ancestor)
            if entry is None:
                session.add(self._new_entry(ancestor, is_directory=True))
                session.flush()
            elif not entry.is_directory:
                raise NotADirectoryError(f"Not a directory: {ancestor}")

    @staticmethod
    def _new_entry(key: str, *, is_directory: bool, content: str | None = None) -> NoteEntry:
        parent, name = split_path(key)
        return NoteEntry(
            path=key,
            parent_path=parent,
            name=name,
            is_directory=is_directory,
            content=content,
            size_bytes=len(content.encode()) if content else 0,
        )

    def _require_file(self, session: Session, key: str) -> NoteEntry:
        entry = self._get(session, key)
        if entry is None:
            raise PathNotFoundError(f"File not found: {key}")
        if entry.is_directory:
            raise IsADirectoryError(f"Is a directory: {key}")
        return entry

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def file_exists(self, path: str) -> bool:
        with Session(self._engine) as session:
            entry = self._get(session, self._key(path))
            return entry is not None and not entry.is_directory

    def read_file(self, path: str) -> str:
        with Session(self._engine) as session:
            return self._require_file(session, self._key(path)).content or ""

    def read_file_bytes(self, path: str) -> bytes:
        return self.read_file(path).encode()

    def write_file(self, path: str, contents: str, overwrite: bool = True) -> None:
        key = self._key(path)
        if key == "/":
            raise IsADirectoryError("Is a directory: /")

        with Session(self._engine) as session:
            entry = self._get(session, key)
            if entry is None:
                self._ensure_parents(session, key)
                entry = self._new_entry(key, is_directory=False, content=contents)
            elif entry.is_directory:
                raise IsADirectoryError(f"Is a directory: {key}")
            elif not overwrite:
                raise FileExistsError(f"File already exists: {key}")
            else:
                entry.content = contents
                entry.size_bytes = len(contents.encode())
                entry.updated_at = datetime.now(UTC)
            session.add(entry)
            session.commit()

    def append_to_file(self, path: str, contents: str) -> None:
        key = self._key(path)
        if key == "/":
            raise IsADirectoryError("Is a directory: /")

        with Session(self._engine) as session:
            # One UPDATE; the existing content is never read back into Python.
            result = session.execute(
                update(NoteEntry)
                .where(col(NoteEntry.path) == key, col(NoteEntry.is_directory).is_(False))
                .values(
                    content=func.coalesce(col(NoteEntry.content), "") + contents,
                    size_bytes=col(NoteEntry.size_bytes) + len(contents.encode()),
                    updated_at=datetime.now(UTC),
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                if self._get(session, key) is not None:
                    raise IsADirectoryError(f"Is a directory: {key}")
                self._ensure_parents(session, key)
                session.add(self._new_entry(key, is_directory=False, content=contents))
            session.commit()

    def delete_file(self, path: str) -> None:
        key = self._key(path)
        with Session(self._engine) as session:
            entry = self._get(session, key)
            if entry is None or entry.is_directory:
                return
            session.delete(entry)
            session.commit()

    def get_file_size(self, path: str) -> int:
        with Session(self._engine) as session:
            return self._require_file(session, self._key(path)).size_bytes

    # ------------------------------------------------------------------
    # Directories
    # ------------------------------------------------------------------

    def directory_exists(self, path: str) -> bool:
        key = self._key(path)
        if key == "/":
            return True
        with Session(self._engine) as session:
            entry = self._get(session, key)
            return entry is not None and entry.is_directory

    def create_directory(self, path: str) -> None:
        key = self._key(path)
        if key == "/":
            return
        with Session(self._engine) as session:
            entry = self._get(session, key)
            if entry is not None:
                if not entry.is_directory:
                    raise FileExistsError(f"A file exists at: {key}")
                return
            self._ensure_parents(session, key)
            session.add(self._new_entry(key, is_directory=True))
            session.commit()

    def delete_directory(self, path: str, recursive: bool = False) -> None:
        key = self._key(path)
        if key == "/":
            raise PermissionError(f"Cannot delete the root of {self.name}")

        with Session(self._engine) as session:
            entry = self._get(session, key)
            if entry is None or not entry.is_directory:
                return
            descendants = session.exec(
                select(NoteEntry).where(col(NoteEntry.path).startswith(key + "/", autoescape=True))
            ).all()
            if descendants and not recursive:
                raise OSError(errno.ENOTEMPTY, "Directory not empty", key)
            for row in descendants:
                session.delete(row)
            session.delete(entry)
            session.commit()

    # ------------------------------------------------------------------
    # Enumeration
    # ------------------------------------------------------------------

    def _enumerate(
        self, directory_path: str, search_pattern: str, scope: SearchScope, *, directories: bool
    ) -> list[str]:
        key = self._key(directory_path)
        with Session(self._engine) as session:
            if key != "/":
                parent = self._get(session, key)
                if parent is None or not parent.is_directory:
                    return []

            query = select(NoteEntry).where(NoteEntry.is_directory == directories)
            if scope is SearchScope.TOP_DIRECTORY_ONLY:
                query = query.where(NoteEntry.parent_path == key)
            elif key != "/":
                query = query.where(col(NoteEntry.path).startswith(key + "/", autoescape=True))
            rows = session.exec(query.order_by(col(NoteEntry.path))).all()

        return [to_relative(row.path) for row in rows if matches_pattern(row.name, search_pattern)]

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
        return f"NotesPlugin(url={self._engine.url.render_as_string(hide_password=True)!r})"
