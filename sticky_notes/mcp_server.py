"""
Sticky Notes MCP server.

Exposes note tools and resources over the Model Context Protocol. Tool calls
go through the same services as the REST API, and their change events are
pushed to the same WebSocket broadcaster, so the web UI updates live when an
assistant edits notes.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional, Union

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ResourceError, ToolError

from .broadcast import Broadcaster
from .catalog import list_conversations
from .db import Database
from .errors import InternalError, StickyNotesError
from .filters import MAX_LIMIT, MAX_PAGE, NoteFilter
from .services import NoteService

logger = logging.getLogger(__name__)

SERVER_NAME = "sticky-notes"


class StickyNotesMcpServer:
    def __init__(self, notes: NoteService, db: Database, broadcaster: Optional[Broadcaster] = None):
        self.notes = notes
        self.db = db
        self.broadcaster = broadcaster or Broadcaster(enabled=False)
        self.mcp = FastMCP(SERVER_NAME)
        self._register_tools()
        self._register_resources()

    def _register_tools(self) -> None:
        self.mcp.tool(name="create-note", description="Creates a new note")(self.create_note)
        self.mcp.tool(name="update-note", description="Updates the content of an existing note")(self.update_note)
        self.mcp.tool(name="delete-note", description="Deletes a note")(self.delete_note)
        self.mcp.tool(
            name="search-notes",
            description="Searches notes by text, tags and conversation, one page at a time",
        )(self.search_notes)
        self.mcp.tool(
            name="list-conversations",
            description="Lists conversations with their note counts",
        )(self.list_conversations)

    def _register_resources(self) -> None:
        self.mcp.resource(
            "notes://{conversation_id}",
            name="Notes by Conversation ID",
            mime_type="application/json",
            description="Returns all notes for a given conversation ID",
        )(self.read_conversation)
        self.mcp.resource(
            "note://{note_id}",
            name="Note by ID",
            mime_type="application/json",
            description="Returns a single note by ID",
        )(self.read_note)

    @staticmethod
    def _tool_error(action: str, exc: StickyNotesError) -> ToolError:
        if isinstance(exc, InternalError):
            logger.error("Error %s: %s", action, exc.message, exc_info=exc)
        else:
            logger.info("Tool call failed while %s: %s", action, exc.message)
        return ToolError(f"Error {action}: {exc.message}")

    # ---------- tools ----------
    async def create_note(
        self,
        title: str,
        content: str,
        conversationId: str,  # noqa: N803  wire name
        tags: Optional[list[str]] = None,
        color_hex: Optional[str] = None,
    ) -> str:
        """Create a note in a conversation, with optional tags and #RRGGBB color."""
        try:
            result = self.notes.create_note(
                {
                    "title": title,
                    "content": content,
                    "conversation_id": conversationId,
                    "tags": tags or [],
                    "color_hex": color_hex or None,
                }
            )
        except StickyNotesError as exc:
            raise self._tool_error("creating note", exc) from exc
        await self.broadcaster.publish(result.events)
        logger.info("Tool create-note invoked, id=%s", result.value.id)
        return f"Note created with id {result.value.id}"

    async def update_note(self, id: Union[int, str], content: str) -> str:  # noqa: A002
        """Replace the content of a note."""
        try:
            result = self.notes.update_note_content(id, content)
        except StickyNotesError as exc:
            raise self._tool_error("updating note", exc) from exc
        await self.broadcaster.publish(result.events)
        return f"Note updated with id {result.value.id}"

    async def delete_note(self, id: Union[int, str]) -> str:  # noqa: A002
        """Delete a note and its tag links."""
        try:
            result = self.notes.delete_note(id)
        except StickyNotesError as exc:
            raise self._tool_error("deleting note", exc) from exc
        await self.broadcaster.publish(result.events)
        return f"Note deleted with id {result.value.id}"

    async def search_notes(
        self,
        query: Optional[str] = None,
        tags: Optional[list[str]] = None,
        conversationId: Optional[str] = None,  # noqa: N803  wire name
        page: int = 1,
        limit: int = 10,
    ) -> dict[str, Any]:
        """Find notes whose title or content contains ``query`` and that carry any of ``tags``."""
        try:
            note_filter = NoteFilter(
                search=query,
                tags=tags or [],
                conversation=conversationId,
                page=min(max(page, 1), MAX_PAGE),
                limit=min(max(limit, 1), MAX_LIMIT),
            )
            page_result = self.notes.list_notes(note_filter)
        except StickyNotesError as exc:
            raise self._tool_error("searching notes", exc) from exc
        logger.info("Tool search-notes invoked, found=%d", page_result.pagination.total)
        return page_result.model_dump(by_alias=True)

    async def list_conversations(self) -> dict[str, Any]:
        """List every conversation id with note count and first/last activity."""
        try:
            rows = list_conversations(self.db)
        except StickyNotesError as exc:
            raise self._tool_error("listing conversations", exc) from exc
        return {"conversations": [row.model_dump() for row in rows]}

    # ---------- resources ----------
    def read_conversation(self, conversation_id: str) -> str:
        notes = self.notes.notes_by_conversation(conversation_id)
        return json.dumps([n.model_dump() for n in notes], indent=2)

    def read_note(self, note_id: str) -> str:
        try:
            note = self.notes.get_note(note_id)
        except StickyNotesError as exc:
            raise ResourceError(exc.message) from exc
        return json.dumps(note.model_dump(), indent=2)

    async def run_stdio(self) -> None:
        logger.info("Sticky Notes MCP server running on stdio")
        await self.mcp.run_stdio_async()
