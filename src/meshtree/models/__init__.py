"""SQLModel database models for meshtree."""

from meshtree.models.notes import NoteEntry, NoteEntryBase

__all__ = [
    "NoteEntry",
    "NoteEntryBase",
]
