from __future__ import annotations

from typing import Annotated, Any, Iterable, Literal, Optional, TypeVar

import pydantic
from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator

from .config import HEX_COLOR_RE
from .errors import ValidationError
from .models import DEFAULT_CONVERSATION, Note

M = TypeVar("M", bound=BaseModel)


def normalize_tags(tags: Optional[Iterable[Any]]) -> list[str]:
    """Trim, drop blanks and dedupe, keeping first-seen order."""
    if not tags:
        return []
    seen: dict[str, None] = {}
    for tag in tags:
        name = str(tag).strip()
        if name:
            seen.setdefault(name, None)
    return list(seen)


def _check_tag_names(tags: Optional[Iterable[Any]]) -> list[str]:
    names = normalize_tags(tags)
    # commas separate names in query strings, so a name may not contain one
    bad = [name for name in names if "," in name]
    if bad:
        raise ValueError(f"tag names cannot contain commas: {', '.join(bad)}")
    return names


def _check_color(value: str) -> str:
    value = value.strip()
    if not HEX_COLOR_RE.match(value):
        raise ValueError("color_hex must look like #RRGGBB")
    return value.upper()


HexColor = Annotated[str, AfterValidator(_check_color)]


def parse(model: type[M], data: Any) -> M:
    """Validate ``data`` into ``model``, raising the shared ValidationError."""
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'body'}: {err['msg']}"
            for err in exc.errors()
        )
        raise ValidationError(f"Invalid {model.__name__}: {problems}") from exc


# ---------- Inputs ----------
class NoteCreate(BaseModel):
    title: str = Field(min_length=1, max_length=100)
    content: str
    conversation_id: str = DEFAULT_CONVERSATION
    tags: list[str] = Field(default_factory=list)
    color_hex: Optional[HexColor] = None
    section_id: Optional[int] = None

    @field_validator("conversation_id", mode="before")
    @classmethod
    def _default_conversation(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return DEFAULT_CONVERSATION
        return value.strip() if isinstance(value, str) else value

    @field_validator("tags", mode="after")
    @classmethod
    def _tags(cls, value: list[str]) -> list[str]:
        return _check_tag_names(value)


class NoteUpdate(BaseModel):
    content: str
    title: Optional[str] = Field(default=None, min_length=1, max_length=100)
    conversation_id: Optional[str] = None
    color_hex: Optional[HexColor] = None
    tags: Optional[list[str]] = None

    @field_validator("conversation_id")
    @classmethod
    def _conversation(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        return value.strip()

    @field_validator("tags", mode="after")
    @classmethod
    def _tags(cls, value: Optional[list[str]]) -> Optional[list[str]]:
        return None if value is None else _check_tag_names(value)


class ColorPatch(BaseModel):
    color_hex: HexColor


class SectionPatch(BaseModel):
    section_id: Optional[int]


class SectionIn(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    order_index: int = 0


class TagParentPatch(BaseModel):
    parent_id: Optional[int]


class ExportRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    note_ids: list[int] = Field(alias="noteIds", min_length=1)
    format: Literal["md", "html"] = "md"


class RenderRequest(BaseModel):
    content: str = Field(min_length=1)


# ---------- Outputs ----------
class NoteOut(BaseModel):
    id: int
    title: str
    content: str
    conversation_id: str
    color_hex: Optional[str]
    section_id: Optional[int]
    created_at: int
    updated_at: int
    tags: list[str] = Field(default_factory=list)

    @classmethod
    def from_note(cls, note: Note, tags: Iterable[str] = ()) -> "NoteOut":
        return cls(
            id=note.id, title=note.title, content=note.content,
            conversation_id=note.conversation_id, color_hex=note.color_hex,
            section_id=note.section_id, created_at=note.created_at,
            updated_at=note.updated_at, tags=list(tags),
        )


class Pagination(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total: int
    page: int
    limit: int
    total_pages: int = Field(serialization_alias="totalPages", validation_alias="totalPages")


class NotePage(BaseModel):
    notes: list[NoteOut]
    pagination: Pagination


class SectionOut(BaseModel):
    id: int
    name: str
    order_index: int
    created_at: int
    updated_at: int


class ConversationOut(BaseModel):
    conversation_id: str
    note_count: int
    created_at: int
    updated_at: int


class TagNode(BaseModel):
    id: int
    name: str
    parent_id: Optional[int]
    level: int
