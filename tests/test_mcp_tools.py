import json

import pytest
from mcp.server.fastmcp.exceptions import ResourceError, ToolError

from sticky_notes.broadcast import Broadcaster
from sticky_notes.mcp_server import StickyNotesMcpServer

pytestmark = pytest.mark.anyio


@pytest.fixture
def broadcaster():
    return Broadcaster()


@pytest.fixture
def server(notes, db, broadcaster):
    return StickyNotesMcpServer(notes, db, broadcaster)


async def test_tools_are_registered_under_wire_names(server):
    names = {tool.name for tool in await server.mcp.list_tools()}
    assert names == {"create-note", "update-note", "delete-note", "search-notes", "list-conversations"}


async def test_create_note_tool(server, notes):
    message = await server.create_note("From tool", "body", "chat-1", tags=["mcp"], color_hex="#93C5FD")
    assert message.startswith("Note created with id ")
    note_id = int(message.rsplit(" ", 1)[1])

    note = notes.get_note(note_id)
    assert note.conversation_id == "chat-1"
    assert note.tags == ["mcp"]
    assert note.color_hex == "#93C5FD"


async def test_tool_mutations_reach_websocket_clients(server, broadcaster, fake_socket):
    socket = fake_socket()
    await broadcaster.connect(socket)

    await server.create_note("t", "", "c", tags=["x"])
    types = [json.loads(m)["type"] for m in socket.sent]
    assert types == ["note_created", "conversation_created", "tag_created"]


async def test_update_and_delete_accept_string_ids(server, notes, make_note):
    note = make_note("t", content="old")

    assert await server.update_note(str(note.id), "new") == f"Note updated with id {note.id}"
    assert notes.get_note(note.id).content == "new"

    assert await server.delete_note(note.id) == f"Note deleted with id {note.id}"
    assert notes.list_notes().notes == []


async def test_errors_become_tool_errors(server):
    with pytest.raises(ToolError, match="not found"):
        await server.update_note(999, "x")
    with pytest.raises(ToolError, match="Malformed"):
        await server.delete_note("abc")
    with pytest.raises(ToolError):
        await server.create_note("", "content", "c")


async def test_search_notes_tool(server, make_note):
    hit = make_note("Groceries", content="milk", tags=["home"], conversation_id="c1")
    make_note("Groceries", tags=["work"], conversation_id="c1")
    make_note("Taxes", tags=["home"], conversation_id="c1")

    result = await server.search_notes(query="groc", tags=["home"], conversationId="c1")
    assert [n["id"] for n in result["notes"]] == [hit.id]
    assert result["pagination"]["totalPages"] == 1

    paged = await server.search_notes(page=2, limit=2)
    assert len(paged["notes"]) == 1
    assert paged["pagination"]["total"] == 3


async def test_list_conversations_tool(server, make_note):
    make_note("a", conversation_id="one")
    make_note("b", conversation_id="one")
    result = await server.list_conversations()
    assert [(c["conversation_id"], c["note_count"]) for c in result["conversations"]] == [("one", 2)]


async def test_resources(server, make_note):
    note = make_note("r", conversation_id="res")

    listed = json.loads(server.read_conversation("res"))
    assert [n["id"] for n in listed] == [note.id]
    assert json.loads(server.read_note(str(note.id)))["title"] == "r"

    with pytest.raises(ResourceError):
        server.read_note("999")
