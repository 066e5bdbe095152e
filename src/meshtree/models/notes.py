"""Note entry model — one row per file or directory in the notes store."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


class NoteEntryBase(SQLModel):
    """Base fields for a note entry. Subclass with ``table=True`` for a concrete table."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    path: str = Field(index=True, unique=True)
    parent_path: str = Field(default="/", index=True)
    name: str = Field(default="")
    is_directory: bool = Field(default=False)
    content: str | None = Field(default=None)
    size_bytes: int = Field(default=0)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),
    )


class NoteEntry(NoteEntryBase, table=True):
    """Default notes table — ``meshtree_notes``."""

    __tablename__ = "meshtree_notes"
