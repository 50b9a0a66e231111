from __future__ import annotations

import time
from typing import Optional

from sqlalchemy import Index
from sqlmodel import Field, SQLModel

from .config import DEFAULT_COLOR

DEFAULT_CONVERSATION = "default"


def now_ts() -> int:
    """Current time as integer Unix seconds."""
    return int(time.time())


class Section(SQLModel, table=True):
    __tablename__ = "sections"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    order_index: int = Field(index=True)
    created_at: int = Field(default_factory=now_ts)
    updated_at: int = Field(default_factory=now_ts)

    def touch(self) -> None:
        self.updated_at = now_ts()


class Tag(SQLModel, table=True):
    __tablename__ = "tags"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(unique=True, index=True)
    # parent deletion orphans children instead of removing them
    parent_id: Optional[int] = Field(
        default=None, foreign_key="tags.id", ondelete="SET NULL", index=True
    )


class Note(SQLModel, table=True):
    __tablename__ = "notes"
    __table_args__ = (
        Index("idx_notes_conversation_updated", "conversation_id", "updated_at"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    content: str
    conversation_id: str = Field(default=DEFAULT_CONVERSATION)
    color_hex: Optional[str] = Field(default=DEFAULT_COLOR, max_length=7)
    section_id: Optional[int] = Field(
        default=None, foreign_key="sections.id", ondelete="SET NULL", index=True
    )
    created_at: int = Field(default_factory=now_ts)
    updated_at: int = Field(default_factory=now_ts, index=True)

    def touch(self) -> None:
        self.updated_at = now_ts()


class NoteTag(SQLModel, table=True):
    __tablename__ = "note_tags"

    note_id: int = Field(foreign_key="notes.id", primary_key=True, ondelete="CASCADE")
    tag_id: int = Field(
        foreign_key="tags.id", primary_key=True, ondelete="CASCADE", index=True
    )
