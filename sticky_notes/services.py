from __future__ import annotations

import logging
from typing import Any, Iterable, Optional, Union

from sqlalchemy import func
from sqlmodel import Session, col, select

from .config import DEFAULT_COLOR
from .db import Database
from .errors import NotFoundError, ValidationError
from .events import (
    ChangeEvent,
    EventType,
    MutationResult,
    conversation_event,
    note_event,
    tag_event,
)
from .export import ExportFormat, export_note, export_notes
from .filters import NoteFilter, build_plan
from .listing import fetch_page, with_tags
from .models import Note, NoteTag, Tag
from .schemas import ColorPatch, NoteCreate, NoteOut, NotePage, NoteUpdate, parse

logger = logging.getLogger(__name__)


def parse_id(value: Any, kind: str = "note") -> int:
    """Accept ints and digit strings; anything else is a malformed id."""
    if isinstance(value, bool):
        raise ValidationError(f"Malformed {kind} id: {value!r}")
    if isinstance(value, int):
        ident = value
    elif isinstance(value, str) and value.strip().isdigit():
        ident = int(value.strip())
    else:
        raise ValidationError(f"Malformed {kind} id: {value!r}")
    if ident < 1:
        raise ValidationError(f"Malformed {kind} id: {value!r}")
    return ident


# ---------- session helpers ----------
def conversation_count(s: Session, conversation_id: str) -> int:
    stmt = select(func.count(col(Note.id))).where(col(Note.conversation_id) == conversation_id)
    return s.exec(stmt).one()


def tag_count(s: Session, name: str) -> int:
    stmt = (
        select(func.count(col(NoteTag.note_id)))
        .join(Tag, col(Tag.id) == col(NoteTag.tag_id))
        .where(col(Tag.name) == name)
    )
    return s.exec(stmt).one()


def tag_names(s: Session, note_id: int) -> list[str]:
    stmt = (
        select(Tag.name)
        .join(NoteTag, col(NoteTag.tag_id) == col(Tag.id))
        .where(col(NoteTag.note_id) == note_id)
        .order_by(col(Tag.name))
    )
    return list(s.exec(stmt))


def find_or_create_tag(s: Session, name: str) -> tuple[Tag, bool]:
    tag = s.exec(select(Tag).where(col(Tag.name) == name)).first()
    if tag is not None:
        return tag, False
    tag = Tag(name=name)
    s.add(tag)
    s.flush()
    logger.info("Created tag %r", name)
    return tag, True


def link_tags(s: Session, note_id: int, names: Iterable[str]) -> set[str]:
    """Link ``names`` to the note; returns the names whose tag was just created."""
    created = set()
    for name in names:
        tag, is_new = find_or_create_tag(s, name)
        if is_new:
            created.add(name)
        s.add(NoteTag(note_id=note_id, tag_id=tag.id))
    s.flush()
    return created


def unlink_tags(s: Session, note_id: int) -> None:
    for link in list(s.exec(select(NoteTag).where(col(NoteTag.note_id) == note_id))):
        s.delete(link)
    s.flush()


def get_or_404(s: Session, note_id: int) -> Note:
    note = s.get(Note, note_id)
    if note is None:
        raise NotFoundError.for_id("Note", note_id)
    return note


def tag_events(s: Session, names: Iterable[str], created: Iterable[str] = ()) -> list[ChangeEvent]:
    created = set(created)
    return [tag_event(name, tag_count(s, name), created=name in created) for name in names]


class NoteService:
    """Note reads and mutations. Mutations return a MutationResult with ordered events."""

    def __init__(self, db: Database, default_color: str = DEFAULT_COLOR):
        self.db = db
        self.default_color = default_color

    # ---------- reads ----------
    def list_notes(self, note_filter: Optional[NoteFilter] = None) -> NotePage:
        note_filter = note_filter or NoteFilter()
        plan = build_plan(note_filter)
        with self.db.session_scope() as s:
            return fetch_page(s, plan, note_filter.page, note_filter.limit)

    def get_note(self, note_id: Any) -> NoteOut:
        ident = parse_id(note_id)
        with self.db.session_scope() as s:
            note = get_or_404(s, ident)
            return NoteOut.from_note(note, tag_names(s, ident))

    def notes_by_conversation(self, conversation_id: str) -> list[NoteOut]:
        with self.db.session_scope() as s:
            stmt = (
                select(Note)
                .where(col(Note.conversation_id) == conversation_id)
                .order_by(col(Note.updated_at).desc(), col(Note.id).desc())
            )
            return with_tags(s, s.exec(stmt))

    def notes_in_section(self, section_id: Any) -> list[NoteOut]:
        ident = parse_id(section_id, "section")
        with self.db.session_scope() as s:
            stmt = (
                select(Note)
                .where(col(Note.section_id) == ident)
                .order_by(col(Note.updated_at).desc(), col(Note.id).desc())
            )
            return with_tags(s, s.exec(stmt))

    def export(self, note_ids: list[Any], fmt: ExportFormat = "md") -> str:
        if not isinstance(note_ids, list) or not note_ids:
            raise ValidationError("Invalid note IDs")
        notes = [self.get_note(note_id) for note_id in note_ids]
        if len(notes) == 1:
            return export_note(notes[0], fmt=fmt)
        return export_notes(notes, fmt=fmt)

    # ---------- mutations ----------
    def create_note(self, data: Union[NoteCreate, dict]) -> MutationResult[NoteOut]:
        payload = data if isinstance(data, NoteCreate) else parse(NoteCreate, data)
        with self.db.session_scope() as s:
            note = Note(
                title=payload.title,
                content=payload.content,
                conversation_id=payload.conversation_id,
                color_hex=payload.color_hex or self.default_color,
                section_id=payload.section_id,
            )
            s.add(note)
            s.flush()
            s.refresh(note)
            created_tags = link_tags(s, note.id, payload.tags)

            out = NoteOut.from_note(note, tag_names(s, note.id))
            count = conversation_count(s, note.conversation_id)
            events = [
                note_event(EventType.NOTE_CREATED, out),
                conversation_event(note.conversation_id, count, created=count == 1),
                *tag_events(s, payload.tags, created_tags),
            ]
        logger.info("Created note %s in conversation %r", out.id, out.conversation_id)
        return MutationResult(out, events)

    def update_note(self, note_id: Any, data: Union[NoteUpdate, dict]) -> MutationResult[NoteOut]:
        """Full update. A given ``tags`` list replaces the note's tag set."""
        ident = parse_id(note_id)
        payload = data if isinstance(data, NoteUpdate) else parse(NoteUpdate, data)
        with self.db.session_scope() as s:
            note = get_or_404(s, ident)
            old_conversation = note.conversation_id
            old_tags = set(tag_names(s, ident))

            note.content = payload.content
            if payload.title is not None:
                note.title = payload.title
            if payload.conversation_id is not None:
                note.conversation_id = payload.conversation_id
            if payload.color_hex is not None:
                note.color_hex = payload.color_hex
            note.touch()
            s.add(note)
            s.flush()

            created_tags: set[str] = set()
            if payload.tags is not None:
                unlink_tags(s, ident)
                created_tags = link_tags(s, ident, payload.tags)
            new_tags = tag_names(s, ident)

            out = NoteOut.from_note(note, new_tags)
            events = [note_event(EventType.NOTE_UPDATED, out)]
            if note.conversation_id != old_conversation:
                count = conversation_count(s, note.conversation_id)
                events.append(conversation_event(note.conversation_id, count, created=count == 1))
                events.append(conversation_event(old_conversation, conversation_count(s, old_conversation)))
            else:
                events.append(conversation_event(note.conversation_id, conversation_count(s, note.conversation_id)))
            events.extend(tag_events(s, sorted(old_tags.symmetric_difference(new_tags)), created_tags))
        logger.info("Updated note %s", ident)
        return MutationResult(out, events)

    def update_note_content(self, note_id: Any, content: Any) -> MutationResult[NoteOut]:
        """Content-only update used by the tool-call surface."""
        ident = parse_id(note_id)
        if not isinstance(content, str):
            raise ValidationError("content must be a string")
        with self.db.session_scope() as s:
            note = get_or_404(s, ident)
            note.content = content
            note.touch()
            s.add(note)
            s.flush()
            out = NoteOut.from_note(note, tag_names(s, ident))
        logger.info("Updated content of note %s", ident)
        return MutationResult(out, [note_event(EventType.NOTE_UPDATED, out)])

    def delete_note(self, note_id: Any) -> MutationResult[NoteOut]:
        ident = parse_id(note_id)
        with self.db.session_scope() as s:
            # read before delete: the events need the prior note and its tags
            note = get_or_404(s, ident)
            names = tag_names(s, ident)
            prior = NoteOut.from_note(note, names)

            s.delete(note)
            s.flush()

            events = [
                note_event(EventType.NOTE_DELETED, prior),
                conversation_event(prior.conversation_id, conversation_count(s, prior.conversation_id)),
                *tag_events(s, names),
            ]
        logger.info("Deleted note %s", ident)
        return MutationResult(prior, events)

    def set_color(self, note_id: Any, color_hex: Any) -> MutationResult[NoteOut]:
        ident = parse_id(note_id)
        color = parse(ColorPatch, {"color_hex": color_hex}).color_hex
        with self.db.session_scope() as s:
            note = get_or_404(s, ident)
            note.color_hex = color
            note.touch()
            s.add(note)
            s.flush()
            out = NoteOut.from_note(note, tag_names(s, ident))
        return MutationResult(out, [note_event(EventType.NOTE_UPDATED, out)])

    def set_colors(self, note_ids: Any, color_hex: Any) -> MutationResult[list[NoteOut]]:
        """Recolor many notes in one transaction: all of them or none.

        Ids that match no note are skipped.
        """
        if not isinstance(note_ids, list) or not color_hex:
            raise ValidationError("Invalid request parameters")
        # repeated ids recolor (and report) a note once
        idents = list(dict.fromkeys(parse_id(note_id) for note_id in note_ids))
        color = parse(ColorPatch, {"color_hex": color_hex}).color_hex

        with self.db.session_scope() as s:
            updated = []
            for ident in idents:
                note = s.get(Note, ident)
                if note is None:
                    logger.debug("Bulk color skipped missing note %s", ident)
                    continue
                note.color_hex = color
                note.touch()
                s.add(note)
                updated.append(note)
            s.flush()
            outs = with_tags(s, updated)
        logger.info("Recolored %d of %d notes to %s", len(outs), len(idents), color)
        return MutationResult(outs, [note_event(EventType.NOTE_UPDATED, out) for out in outs])

    def set_section(self, note_id: Any, section_id: Any) -> MutationResult[NoteOut]:
        ident = parse_id(note_id)
        section = None if section_id is None else parse_id(section_id, "section")
        with self.db.session_scope() as s:
            note = get_or_404(s, ident)
            note.section_id = section
            note.touch()
            s.add(note)
            s.flush()
            out = NoteOut.from_note(note, tag_names(s, ident))
        return MutationResult(out, [note_event(EventType.NOTE_UPDATED, out)])
