"""Change events produced by mutations.

Services never deliver events themselves. Each mutation returns a
:class:`MutationResult` holding its value and the events it caused, in the
order subscribers must see them: the primary entity event first, then the
conversation rollup, then one event per affected tag.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from pydantic import BaseModel

from .schemas import NoteOut

T = TypeVar("T")


class EventType(str, enum.Enum):
    NOTE_CREATED = "note_created"
    NOTE_UPDATED = "note_updated"
    NOTE_DELETED = "note_deleted"
    CONVERSATION_CREATED = "conversation_created"
    CONVERSATION_UPDATED = "conversation_updated"
    TAG_CREATED = "tag_created"
    TAG_UPDATED = "tag_updated"


class ChangeEvent(BaseModel):
    type: EventType
    payload: dict[str, Any]

    def to_message(self) -> str:
        return self.model_dump_json()


def note_event(kind: EventType, note: NoteOut) -> ChangeEvent:
    return ChangeEvent(type=kind, payload=note.model_dump())


def conversation_event(conversation_id: str, note_count: int, created: bool = False) -> ChangeEvent:
    kind = EventType.CONVERSATION_CREATED if created else EventType.CONVERSATION_UPDATED
    return ChangeEvent(type=kind, payload={"conversation_id": conversation_id, "note_count": note_count})


def tag_event(name: str, note_count: int, created: bool = False) -> ChangeEvent:
    kind = EventType.TAG_CREATED if created else EventType.TAG_UPDATED
    return ChangeEvent(type=kind, payload={"name": name, "note_count": note_count})


@dataclass
class MutationResult(Generic[T]):
    value: T
    events: list[ChangeEvent] = field(default_factory=list)

    @property
    def event_types(self) -> list[EventType]:
        return [e.type for e in self.events]
