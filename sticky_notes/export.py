from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal, Sequence

from .rendering import render
from .schemas import NoteOut

ExportFormat = Literal["md", "html"]


def _iso(ts: int) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat().replace("+00:00", "Z")


def _metadata(note: NoteOut, heading: str) -> str:
    lines = [
        f"{heading} Metadata",
        "",
        f"- Created: {_iso(note.created_at)}",
        f"- Updated: {_iso(note.updated_at)}",
    ]
    if note.conversation_id:
        lines.append(f"- Conversation: {note.conversation_id}")
    if note.tags:
        lines.append(f"- Tags: {', '.join(note.tags)}")
    return "\n".join(lines) + "\n\n"


def export_note(note: NoteOut, include_metadata: bool = True, fmt: ExportFormat = "md") -> str:
    text = f"# {note.title}\n\n"
    if include_metadata:
        text += _metadata(note, "##")
    text += f"{note.content}\n"
    return render(text) if fmt == "html" else text


def export_notes(notes: Sequence[NoteOut], include_metadata: bool = True, fmt: ExportFormat = "md") -> str:
    """Several notes in one document, separated by horizontal rules."""
    parts = []
    for note in notes:
        part = f"## {note.title}\n\n"
        if include_metadata:
            part += _metadata(note, "###")
        part += f"{note.content}\n\n"
        parts.append(part)
    text = "# Exported Notes\n\n" + "---\n\n".join(parts)
    return render(text) if fmt == "html" else text
