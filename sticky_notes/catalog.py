"""Tags, sections and conversation rollups."""

from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy import func, literal
from sqlmodel import col, select

from .db import Database
from .errors import NotFoundError, ValidationError
from .models import Note, NoteTag, Section, Tag
from .schemas import ConversationOut, SectionIn, SectionOut, TagNode, parse
from .services import parse_id

logger = logging.getLogger(__name__)

# deepest level the hierarchy read will descend to
MAX_TAG_DEPTH = 32


class TagService:
    def __init__(self, db: Database):
        self.db = db

    def list_names(self) -> list[str]:
        with self.db.session_scope() as s:
            return list(s.exec(select(Tag.name).distinct().order_by(col(Tag.name))))

    def counts(self) -> dict[str, int]:
        stmt = (
            select(Tag.name, func.count(col(NoteTag.note_id)))
            .outerjoin(NoteTag, col(NoteTag.tag_id) == col(Tag.id))
            .group_by(col(Tag.id))
            .order_by(col(Tag.name))
        )
        with self.db.session_scope() as s:
            return {name: count for name, count in s.exec(stmt)}

    def hierarchy(self) -> list[TagNode]:
        """Every tag reachable from a root, with its depth, ordered by (level, name)."""
        tree = (
            select(Tag.id, Tag.name, Tag.parent_id, literal(0).label("level"))
            .where(col(Tag.parent_id).is_(None))
            .cte("tag_tree", recursive=True)
        )
        children = (
            select(Tag.id, Tag.name, Tag.parent_id, (tree.c.level + 1).label("level"))
            .join(tree, col(Tag.parent_id) == tree.c.id)
            .where(tree.c.level < MAX_TAG_DEPTH)
        )
        tree = tree.union_all(children)
        stmt = select(tree.c.id, tree.c.name, tree.c.parent_id, tree.c.level).order_by(
            tree.c.level, tree.c.name
        )
        with self.db.session_scope() as s:
            return [
                TagNode(id=row[0], name=row[1], parent_id=row[2], level=row[3])
                for row in s.exec(stmt)
            ]

    def set_parent(self, tag_id: Any, parent_id: Any) -> TagNode:
        """Reparent a tag. Self-parenting and cycles are rejected."""
        ident = parse_id(tag_id, "tag")
        parent = None if parent_id is None else parse_id(parent_id, "tag")
        with self.db.session_scope() as s:
            tag = s.get(Tag, ident)
            if tag is None:
                raise NotFoundError.for_id("Tag", ident)
            level = 0
            if parent is not None:
                if parent == ident:
                    raise ValidationError("A tag cannot be its own parent", {"id": ident})
                ancestor = s.get(Tag, parent)
                if ancestor is None:
                    raise NotFoundError.for_id("Tag", parent)
                seen = {parent}
                level = 1
                while ancestor is not None and ancestor.parent_id is not None:
                    if ancestor.parent_id == ident:
                        raise ValidationError(
                            f"Making tag {parent} the parent of {ident} would create a cycle",
                            {"id": ident, "parent_id": parent},
                        )
                    if ancestor.parent_id in seen:
                        break
                    seen.add(ancestor.parent_id)
                    ancestor = s.get(Tag, ancestor.parent_id)
                    level += 1
            tag.parent_id = parent
            s.add(tag)
            s.flush()
            logger.info("Tag %s parent set to %s", ident, parent)
            return TagNode(id=tag.id, name=tag.name, parent_id=tag.parent_id, level=level)


class SectionService:
    def __init__(self, db: Database):
        self.db = db

    def list_sections(self) -> list[SectionOut]:
        with self.db.session_scope() as s:
            rows = s.exec(select(Section).order_by(col(Section.order_index), col(Section.id)))
            return [SectionOut.model_validate(row, from_attributes=True) for row in rows]

    def create(self, data: SectionIn | dict) -> SectionOut:
        payload = data if isinstance(data, SectionIn) else parse(SectionIn, data)
        with self.db.session_scope() as s:
            section = Section(name=payload.name, order_index=payload.order_index)
            s.add(section)
            s.flush()
            s.refresh(section)
            logger.info("Created section %s %r", section.id, section.name)
            return SectionOut.model_validate(section, from_attributes=True)

    def update(self, section_id: Any, data: SectionIn | dict) -> SectionOut:
        ident = parse_id(section_id, "section")
        payload = data if isinstance(data, SectionIn) else parse(SectionIn, data)
        with self.db.session_scope() as s:
            section = s.get(Section, ident)
            if section is None:
                raise NotFoundError.for_id("Section", ident)
            section.name = payload.name
            section.order_index = payload.order_index
            section.touch()
            s.add(section)
            s.flush()
            return SectionOut.model_validate(section, from_attributes=True)

    def delete(self, section_id: Any) -> None:
        """Notes in the section stay, with their section cleared."""
        ident = parse_id(section_id, "section")
        with self.db.session_scope() as s:
            section = s.get(Section, ident)
            if section is None:
                raise NotFoundError.for_id("Section", ident)
            s.delete(section)
        logger.info("Deleted section %s", ident)


def list_conversations(db: Database, conversation_id: Optional[str] = None) -> list[ConversationOut]:
    stmt = select(
        Note.conversation_id,
        func.count(col(Note.id)),
        func.min(col(Note.created_at)),
        func.max(col(Note.updated_at)),
    )
    if conversation_id is not None:
        stmt = stmt.where(col(Note.conversation_id) == conversation_id)
    stmt = stmt.group_by(col(Note.conversation_id)).order_by(col(Note.conversation_id))
    with db.session_scope() as s:
        return [
            ConversationOut(conversation_id=cid, note_count=count, created_at=first, updated_at=last)
            for cid, count, first, last in s.exec(stmt)
        ]
