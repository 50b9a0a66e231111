from __future__ import annotations

import logging
import math
from collections import defaultdict
from typing import Iterable, Sequence

from sqlalchemy import distinct, func
from sqlmodel import Session, col, select

from .filters import FilterPlan
from .models import Note, NoteTag, Tag
from .schemas import NoteOut, NotePage, Pagination

logger = logging.getLogger(__name__)


def tags_by_note(session: Session, note_ids: Sequence[int]) -> dict[int, list[str]]:
    """One batched query for the tag names of every id in ``note_ids``."""
    if not note_ids:
        return {}
    stmt = (
        select(NoteTag.note_id, Tag.name)
        .join(Tag, col(Tag.id) == col(NoteTag.tag_id))
        .where(col(NoteTag.note_id).in_(note_ids))
        .order_by(col(Tag.name))
    )
    grouped: dict[int, list[str]] = defaultdict(list)
    for note_id, name in session.exec(stmt):
        grouped[note_id].append(name)
    return dict(grouped)


def with_tags(session: Session, notes: Iterable[Note]) -> list[NoteOut]:
    notes = list(notes)
    tag_map = tags_by_note(session, [n.id for n in notes])
    return [NoteOut.from_note(n, tag_map.get(n.id, [])) for n in notes]


def fetch_page(session: Session, plan: FilterPlan, page: int, limit: int) -> NotePage:
    """Run page fetch, total count and tag attach on one session.

    The caller owns the transaction; all three reads must share it so the
    count and the page describe the same snapshot.
    """
    where = plan.where()

    stmt = select(Note)
    if where is not None:
        stmt = stmt.where(where)
    stmt = stmt.order_by(*plan.order_by()).limit(limit).offset((page - 1) * limit)
    logger.debug("Listing notes order=%s params=%s", plan.order_sql, plan.params)
    notes = list(session.exec(stmt))

    if not notes:
        return NotePage(notes=[], pagination=Pagination(total=0, page=page, limit=limit, total_pages=0))

    count_stmt = select(func.count(distinct(Note.id)))
    if where is not None:
        count_stmt = count_stmt.where(where)
    total = session.exec(count_stmt).one()

    return NotePage(
        notes=with_tags(session, notes),
        pagination=Pagination(
            total=total, page=page, limit=limit, total_pages=math.ceil(total / limit)
        ),
    )
