from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import Body, FastAPI, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse, Response

from .broadcast import Broadcaster
from .catalog import SectionService, TagService, list_conversations
from .config import PALETTE, Settings, get_settings
from .db import Database, open_database
from .errors import InternalError, StickyNotesError
from .filters import DEFAULT_LIMIT, DEFAULT_PAGE, MAX_LIMIT, MAX_PAGE, NoteFilter, SortSpec
from .rendering import render
from .schemas import (
    ColorPatch,
    ExportRequest,
    NoteCreate,
    NoteOut,
    NotePage,
    NoteUpdate,
    RenderRequest,
    SectionIn,
    SectionOut,
    SectionPatch,
    TagNode,
    TagParentPatch,
)
from .services import NoteService
from .ui import INDEX_HTML

logger = logging.getLogger(__name__)

WS_PATH = "/ws"


def create_app(
    settings: Optional[Settings] = None,
    db: Optional[Database] = None,
    broadcaster: Optional[Broadcaster] = None,
) -> FastAPI:
    settings = settings or get_settings()
    db = db or open_database(settings)
    broadcaster = broadcaster or Broadcaster(enabled=settings.enable_websocket)
    notes = NoteService(db, settings.default_color)
    tag_service = TagService(db)
    section_service = SectionService(db)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await broadcaster.close_all()

    app = FastAPI(title="Sticky Notes API", lifespan=lifespan)
    app.state.settings = settings
    app.state.db = db
    app.state.broadcaster = broadcaster
    app.state.notes = notes

    # ---------- Errors ----------
    @app.exception_handler(StickyNotesError)
    async def _sticky_error(request: Request, exc: StickyNotesError):
        if isinstance(exc, InternalError):
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message, exc_info=exc)
        return JSONResponse(exc.to_dict(), status_code=exc.status_code)

    @app.exception_handler(Exception)
    async def _unexpected_error(request: Request, exc: Exception):
        logger.error("%s %s crashed", request.method, request.url.path, exc_info=exc)
        error = InternalError("Internal server error", {"reason": type(exc).__name__})
        return JSONResponse(error.to_dict(), status_code=error.status_code)

    @app.exception_handler(RequestValidationError)
    async def _request_error(request: Request, exc: RequestValidationError):
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        return JSONResponse(
            {"error": f"Invalid request parameters: {problems}", "code": "ValidationError"},
            status_code=400,
        )

    # ---------- Notes ----------
    @app.get("/api/notes", response_model=NotePage)
    async def api_list_notes(
        search: Optional[str] = None,
        tags: Optional[list[str]] = Query(None),
        conversation: Optional[str] = None,
        color: Optional[str] = None,
        start_date: Optional[int] = Query(None, alias="startDate"),
        page: int = Query(DEFAULT_PAGE, ge=1, le=MAX_PAGE),
        limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
        sort: Optional[str] = None,
        direction: Optional[str] = None,
    ):
        note_filter = NoteFilter(
            search=search,
            # each query value may itself be a comma separated list
            tags=",".join(tags) if tags else None,
            conversation=conversation,
            color=color,
            start_date=start_date,
            sort=SortSpec.parse(sort, direction),
            page=page,
            limit=limit,
        )
        return notes.list_notes(note_filter)

    @app.post("/api/notes", response_model=NoteOut, status_code=201)
    async def api_create_note(payload: NoteCreate):
        result = notes.create_note(payload)
        await broadcaster.publish(result.events)
        return result.value

    # declared before the {note_id} routes so "bulk" is never read as an id
    @app.patch("/api/notes/bulk/color")
    async def api_bulk_color(payload: dict[str, Any] = Body(...)):
        result = notes.set_colors(payload.get("noteIds"), payload.get("color_hex"))
        await broadcaster.publish(result.events)
        return {"success": True, "updated": len(result.value)}

    @app.post("/api/notes/export")
    async def api_export(payload: ExportRequest):
        text = notes.export(payload.note_ids, payload.format)
        media_type = "text/html" if payload.format == "html" else "text/markdown"
        filename = f"notes.{payload.format}"
        return Response(
            text,
            media_type=media_type,
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    @app.get("/api/notes/{note_id}", response_model=NoteOut)
    async def api_get_note(note_id: str):
        return notes.get_note(note_id)

    @app.put("/api/notes/{note_id}", response_model=NoteOut)
    async def api_update_note(note_id: str, payload: NoteUpdate):
        result = notes.update_note(note_id, payload)
        await broadcaster.publish(result.events)
        return result.value

    @app.delete("/api/notes/{note_id}")
    async def api_delete_note(note_id: str):
        result = notes.delete_note(note_id)
        await broadcaster.publish(result.events)
        return {"success": True, "id": result.value.id}

    @app.patch("/api/notes/{note_id}/color", response_model=NoteOut)
    async def api_note_color(note_id: str, payload: ColorPatch):
        result = notes.set_color(note_id, payload.color_hex)
        await broadcaster.publish(result.events)
        return result.value

    @app.patch("/api/notes/{note_id}/section", response_model=NoteOut)
    async def api_note_section(note_id: str, payload: SectionPatch):
        result = notes.set_section(note_id, payload.section_id)
        await broadcaster.publish(result.events)
        return result.value

    # ---------- Sections ----------
    @app.get("/api/sections")
    async def api_list_sections():
        return {"sections": section_service.list_sections()}

    @app.post("/api/sections", response_model=SectionOut, status_code=201)
    async def api_create_section(payload: SectionIn):
        return section_service.create(payload)

    @app.put("/api/sections/{section_id}", response_model=SectionOut)
    async def api_update_section(section_id: str, payload: SectionIn):
        return section_service.update(section_id, payload)

    @app.delete("/api/sections/{section_id}")
    async def api_delete_section(section_id: str):
        section_service.delete(section_id)
        return {"success": True}

    @app.get("/api/sections/{section_id}/notes")
    async def api_section_notes(section_id: str):
        return {"notes": notes.notes_in_section(section_id)}

    # ---------- Tags & conversations ----------
    @app.get("/api/tags")
    async def api_list_tags():
        return {"tags": tag_service.list_names()}

    @app.get("/api/tags/hierarchy")
    async def api_tag_hierarchy():
        return {"tags": tag_service.hierarchy()}

    @app.patch("/api/tags/{tag_id}/parent", response_model=TagNode)
    async def api_tag_parent(tag_id: str, payload: TagParentPatch):
        return tag_service.set_parent(tag_id, payload.parent_id)

    @app.get("/api/conversations")
    async def api_list_conversations():
        return {"conversations": list_conversations(db)}

    # ---------- Misc ----------
    @app.post("/api/markdown/render")
    async def api_render(payload: RenderRequest):
        return {"html": render(payload.content)}

    @app.get("/api/config")
    async def api_config():
        return {
            "webPort": settings.web_ui_port,
            "wsPath": WS_PATH,
            "websocket": settings.enable_websocket,
            "dbPath": str(settings.database_file or ":memory:"),
            "palette": [{"hex": hex_, "name": name} for hex_, name in PALETTE.items()],
            "defaultColor": settings.default_color,
        }

    @app.websocket(WS_PATH)
    async def ws_endpoint(websocket: WebSocket):
        if not broadcaster.enabled:
            await websocket.close(code=1008)
            return
        await broadcaster.connect(websocket)
        try:
            while True:
                # clients never send anything meaningful; reading detects the close
                await websocket.receive_text()
        except WebSocketDisconnect:
            broadcaster.disconnect(websocket)

    # ---------- UI ----------
    @app.get("/", response_class=HTMLResponse)
    async def index():
        return HTMLResponse(INDEX_HTML)

    return app
