from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import NoReturn, Optional

import anyio
import typer
import uvicorn
from rich.console import Console
from rich.markdown import Markdown
from rich.table import Table

from .app import create_app
from .broadcast import Broadcaster
from .catalog import TagService, list_conversations
from .config import Settings, configure_logging, get_settings
from .db import Database, open_database
from .errors import StickyNotesError
from .filters import MAX_LIMIT, MAX_PAGE, NoteFilter, SortSpec
from .mcp_server import StickyNotesMcpServer
from .services import NoteService

app = typer.Typer(help="Sticky Notes: local notes server with REST, MCP and a live web UI")
console = Console()
# stdout is the MCP transport in `serve`/`mcp`; keep human output off it there
err_console = Console(stderr=True)


def _boot() -> tuple[Settings, Database]:
    settings = get_settings()
    configure_logging(settings.log_level)
    return settings, open_database(settings)


def _fail(exc: StickyNotesError) -> NoReturn:
    console.print(f"[red]{type(exc).__name__}[/]: {exc.message}")
    raise typer.Exit(1)


def _stamp(ts: int) -> str:
    return datetime.fromtimestamp(ts).isoformat(timespec="minutes")


@app.command()
def serve(
    port: Optional[int] = typer.Option(None, "--port", "-p", help="web UI port"),
    host: Optional[str] = typer.Option(None, "--host"),
    with_mcp: Optional[bool] = typer.Option(None, "--mcp/--no-mcp", help="also serve MCP on stdio"),
):
    """Run the web UI and REST API, plus the MCP stdio server when enabled."""
    settings, db = _boot()
    broadcaster = Broadcaster(enabled=settings.enable_websocket)
    web = create_app(settings, db, broadcaster)
    config = uvicorn.Config(
        web,
        host=host or settings.host,
        port=port or settings.web_ui_port,
        log_level=settings.log_level.lower(),
        log_config=None,
    )
    server = uvicorn.Server(config)
    use_mcp = settings.enable_mcp if with_mcp is None else with_mcp
    err_console.print(f"[green]Web UI[/] http://{config.host}:{config.port}")

    async def run() -> None:
        async with anyio.create_task_group() as tg:
            tg.start_soon(server.serve)
            if use_mcp:
                mcp_server = StickyNotesMcpServer(NoteService(db, settings.default_color), db, broadcaster)
                await mcp_server.run_stdio()
                # stdin closed: the client went away, take the web server down too
                server.should_exit = True

    try:
        anyio.run(run)
    finally:
        db.dispose()


@app.command()
def mcp():
    """Serve only the MCP tools on stdio."""
    settings, db = _boot()
    server = StickyNotesMcpServer(NoteService(db, settings.default_color), db)
    try:
        anyio.run(server.run_stdio)
    finally:
        db.dispose()


@app.command()
def add(
    title: str = typer.Option(..., "--title", "-t"),
    content: str = typer.Option("", "--content", "-c"),
    conversation: Optional[str] = typer.Option(None, "--conversation"),
    tags: Optional[str] = typer.Option(None, "--tags", "-g", help="comma separated"),
    color: Optional[str] = typer.Option(None, "--color", help="#RRGGBB"),
):
    settings, db = _boot()
    notes = NoteService(db, settings.default_color)
    try:
        result = notes.create_note(
            {
                "title": title,
                "content": content,
                "conversation_id": conversation,
                "tags": (tags or "").split(","),
                "color_hex": color,
            }
        )
    except StickyNotesError as exc:
        _fail(exc)
    n = result.value
    console.print(f"[green]Created[/] #{n.id}: {n.title} [dim]({n.conversation_id})[/]")


@app.command("list")
def _list(
    search: Optional[str] = typer.Option(None, "--search"),
    tags: Optional[str] = typer.Option(None, "--tags", help="comma separated, any of"),
    conversation: Optional[str] = typer.Option(None, "--conversation"),
    color: Optional[str] = typer.Option(None, "--color"),
    sort: str = typer.Option("updated_at", "--sort", help="title|updated_at|created_at|color_hex|conversation_id"),
    direction: str = typer.Option("DESC", "--direction"),
    page: int = typer.Option(1, "--page", min=1, max=MAX_PAGE),
    limit: int = typer.Option(20, "--limit", min=1, max=MAX_LIMIT),
):
    settings, db = _boot()
    note_filter = NoteFilter(
        search=search,
        tags=tags,
        conversation=conversation,
        color=color,
        sort=SortSpec.parse(sort, direction),
        page=page,
        limit=limit,
    )
    result = NoteService(db, settings.default_color).list_notes(note_filter)
    p = result.pagination
    table = Table(title=f"Sticky Notes (page {p.page} of {p.total_pages}, {p.total} total)")
    table.add_column("ID", justify="right", style="cyan")
    table.add_column("Title", style="bold")
    table.add_column("Conversation")
    table.add_column("Tags", style="magenta")
    table.add_column("Color")
    table.add_column("Updated")
    for n in result.notes:
        table.add_row(
            str(n.id), n.title, n.conversation_id, ", ".join(n.tags),
            f"[on {n.color_hex}]    [/] {n.color_hex}" if n.color_hex else "",
            _stamp(n.updated_at),
        )
    console.print(table)


@app.command()
def show(note_id: str):
    settings, db = _boot()
    try:
        n = NoteService(db, settings.default_color).get_note(note_id)
    except StickyNotesError as exc:
        _fail(exc)
    console.rule(f"#{n.id} {n.title}")
    console.print(f"[dim]conversation:[/] {n.conversation_id}  [dim]color:[/] {n.color_hex}")
    if n.tags:
        console.print(f"[dim]tags:[/] {', '.join(n.tags)}")
    console.print(Markdown(n.content or "_<empty>_"))


@app.command()
def delete(note_id: str):
    settings, db = _boot()
    try:
        result = NoteService(db, settings.default_color).delete_note(note_id)
    except StickyNotesError as exc:
        _fail(exc)
    console.print(f"[yellow]Deleted[/] #{result.value.id}: {result.value.title}")


@app.command()
def export(
    note_ids: list[str] = typer.Argument(..., help="ids of the notes to export"),
    to: Path = typer.Option(..., "--to"),
    html: bool = typer.Option(False, "--html", help="render to HTML instead of markdown"),
):
    settings, db = _boot()
    try:
        text = NoteService(db, settings.default_color).export(list(note_ids), "html" if html else "md")
    except StickyNotesError as exc:
        _fail(exc)
    to.write_text(text, encoding="utf-8")
    console.print(f"[green]Exported[/] {len(note_ids)} notes -> {to}")


@app.command()
def conversations():
    _, db = _boot()
    table = Table(title="Conversations")
    table.add_column("Conversation", style="bold")
    table.add_column("Notes", justify="right", style="cyan")
    table.add_column("First")
    table.add_column("Last")
    for row in list_conversations(db):
        table.add_row(row.conversation_id, str(row.note_count), _stamp(row.created_at), _stamp(row.updated_at))
    console.print(table)


@app.command()
def tags(tree: bool = typer.Option(False, "--tree", help="show the parent/child hierarchy")):
    _, db = _boot()
    service = TagService(db)
    if tree:
        for node in service.hierarchy():
            console.print(f"{'  ' * node.level}- {node.name} [dim]#{node.id}[/]")
        return
    table = Table(title="Tags")
    table.add_column("Tag", style="magenta")
    table.add_column("Notes", justify="right", style="cyan")
    for name, count in service.counts().items():
        table.add_row(name, str(count))
    console.print(table)


@app.command()
def migrate():
    """Bring a database from an older release up to the current schema."""
    _, db = _boot()
    added = db.upgrade_legacy_schema()
    if added:
        console.print(f"[green]Added[/] {', '.join(added)}")
    else:
        console.print("[dim]Schema already up to date[/]")


def main():
    app()


if __name__ == "__main__":
    main()
