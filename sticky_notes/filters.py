"""Filter predicates for the notes listing.

A :class:`NoteFilter` is turned into a :class:`FilterPlan`: an ordered tuple
of predicates (AND across predicates, OR only inside :class:`HasAnyTag`) plus
a validated sort. Every predicate compiles to a SQLAlchemy expression, so user
input only ever travels as bound parameters.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from sqlalchemy import ColumnElement, and_, or_, select
from sqlmodel import col

from .models import Note, NoteTag, Tag
from .schemas import normalize_tags

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
# (page - 1) * limit must fit the 64-bit OFFSET SQLite accepts
MAX_PAGE = 1_000_000_000
MAX_LIMIT = 1000
LIKE_ESCAPE = "/"


class SortField(str, enum.Enum):
    TITLE = "title"
    UPDATED_AT = "updated_at"
    CREATED_AT = "created_at"
    COLOR_HEX = "color_hex"
    CONVERSATION_ID = "conversation_id"


class SortDirection(str, enum.Enum):
    ASC = "ASC"
    DESC = "DESC"


@dataclass(frozen=True)
class SortSpec:
    """Sort order for the listing. Unknown values fall back to ``updated_at DESC``."""

    field: SortField = SortField.UPDATED_AT
    direction: SortDirection = SortDirection.DESC

    @classmethod
    def parse(cls, raw: Optional[str] = None, direction: Optional[str] = None) -> "SortSpec":
        """Accepts ``"title"``, ``"title asc"`` or a field plus a separate direction.

        Each part is validated on its own; an invalid part keeps its default.
        """
        field_part, _, dir_part = (raw or "").strip().partition(" ")
        if direction:
            dir_part = direction
        try:
            sort_field = SortField(field_part.strip().lower())
        except ValueError:
            sort_field = SortField.UPDATED_AT
        try:
            sort_dir = SortDirection(dir_part.strip().upper())
        except ValueError:
            sort_dir = SortDirection.DESC
        return cls(sort_field, sort_dir)

    @property
    def sql(self) -> str:
        return f"{self.field.value} {self.direction.value}"

    def order_by(self) -> tuple[ColumnElement, ...]:
        column = col(getattr(Note, self.field.value))
        primary = column.asc() if self.direction is SortDirection.ASC else column.desc()
        # id breaks ties so pages never overlap or skip rows
        tiebreak = col(Note.id).asc() if self.direction is SortDirection.ASC else col(Note.id).desc()
        return primary, tiebreak


# ---------- predicate algebra ----------
@dataclass(frozen=True)
class HasAnyTag:
    names: tuple[str, ...]

    @property
    def params(self) -> tuple[Any, ...]:
        return self.names

    def clause(self) -> ColumnElement[bool]:
        return (
            select(NoteTag.note_id)
            .join(Tag, col(Tag.id) == col(NoteTag.tag_id))
            .where(col(NoteTag.note_id) == col(Note.id), col(Tag.name).in_(self.names))
            .exists()
        )


@dataclass(frozen=True)
class Equals:
    column: str
    value: Any

    @property
    def params(self) -> tuple[Any, ...]:
        return (self.value,)

    def clause(self) -> ColumnElement[bool]:
        return col(getattr(Note, self.column)) == self.value


@dataclass(frozen=True)
class OnOrAfter:
    column: str
    timestamp: int

    @property
    def params(self) -> tuple[Any, ...]:
        return (self.timestamp,)

    def clause(self) -> ColumnElement[bool]:
        return col(getattr(Note, self.column)) >= self.timestamp


def escape_like(text: str) -> str:
    """The LIKE operand `icontains(..., autoescape=True)` binds for ``text``."""
    text = text.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
    return text.replace("%", LIKE_ESCAPE + "%").replace("_", LIKE_ESCAPE + "_")


@dataclass(frozen=True)
class Contains:
    columns: tuple[str, ...]
    text: str

    @property
    def params(self) -> tuple[Any, ...]:
        pattern = f"%{escape_like(self.text)}%"
        return tuple(pattern for _ in self.columns)

    def clause(self) -> ColumnElement[bool]:
        return or_(
            *(col(getattr(Note, name)).icontains(self.text, autoescape=True) for name in self.columns)
        )


Predicate = Union[HasAnyTag, Equals, OnOrAfter, Contains]


class NoteFilter(BaseModel):
    """Structured listing request. Blank strings count as not provided."""

    model_config = ConfigDict(populate_by_name=True)

    search: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    conversation: Optional[str] = None
    color: Optional[str] = None
    start_date: Optional[int] = Field(default=None, validation_alias=AliasChoices("start_date", "startDate"))
    sort: SortSpec = Field(default_factory=SortSpec)
    page: int = Field(default=DEFAULT_PAGE, ge=1, le=MAX_PAGE)
    limit: int = Field(default=DEFAULT_LIMIT, ge=1, le=MAX_LIMIT)

    @field_validator("search", "conversation", "color", mode="before")
    @classmethod
    def _blank_is_none(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @field_validator("tags", mode="before")
    @classmethod
    def _split_tags(cls, value: Any) -> list[str]:
        if value is None:
            return []
        # a bare string is a comma separated query value; list items are whole names
        if isinstance(value, str):
            value = value.split(",")
        return normalize_tags(value)

    @field_validator("sort", mode="before")
    @classmethod
    def _sort(cls, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return SortSpec.parse(value)
        if isinstance(value, dict):
            return SortSpec.parse(value.get("field"), value.get("direction"))
        return value

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass(frozen=True)
class FilterPlan:
    predicates: tuple[Predicate, ...]
    sort: SortSpec

    @property
    def params(self) -> tuple[Any, ...]:
        return tuple(p for predicate in self.predicates for p in predicate.params)

    @property
    def order_sql(self) -> str:
        return self.sort.sql

    def order_by(self) -> tuple[ColumnElement, ...]:
        return self.sort.order_by()

    def where(self) -> Optional[ColumnElement[bool]]:
        if not self.predicates:
            return None
        return and_(*(predicate.clause() for predicate in self.predicates))


def build_plan(note_filter: NoteFilter) -> FilterPlan:
    """Predicates in fixed order: tags, conversation, color, start date, search."""
    predicates: list[Predicate] = []
    if note_filter.tags:
        predicates.append(HasAnyTag(tuple(note_filter.tags)))
    if note_filter.conversation:
        predicates.append(Equals("conversation_id", note_filter.conversation))
    if note_filter.color:
        predicates.append(Equals("color_hex", note_filter.color.upper()))
    if note_filter.start_date is not None:
        predicates.append(OnOrAfter("created_at", note_filter.start_date))
    if note_filter.search:
        predicates.append(Contains(("title", "content"), note_filter.search))
    return FilterPlan(tuple(predicates), note_filter.sort)
