import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from sticky_notes.app import create_app
from sticky_notes.broadcast import Broadcaster


def _create(client, **fields):
    body = {"title": "note", "content": "", **fields}
    res = client.post("/api/notes", json=body)
    assert res.status_code == 201, res.text
    return res.json()


def test_create_get_and_list(client):
    note = _create(client, title="hello", content="world", tags=["x"], conversation_id="c1")
    assert note["color_hex"] == "#FFE999"

    res = client.get(f"/api/notes/{note['id']}")
    assert res.status_code == 200
    assert res.json() == note

    res = client.get("/api/notes", params={"tags": "x", "conversation": "c1"})
    body = res.json()
    assert [n["id"] for n in body["notes"]] == [note["id"]]
    assert body["pagination"] == {"total": 1, "page": 1, "limit": 10, "totalPages": 1}


def test_list_accepts_repeated_tags_and_sort(client):
    a = _create(client, title="a", tags=["one"])
    b = _create(client, title="b", tags=["two"])
    _create(client, title="c", tags=["three"])

    res = client.get("/api/notes?tags=one&tags=two&sort=title&direction=ASC")
    assert [n["id"] for n in res.json()["notes"]] == [a["id"], b["id"]]


def test_list_rejects_bad_paging(client):
    res = client.get("/api/notes", params={"page": 0})
    assert res.status_code == 400
    assert res.json()["code"] == "ValidationError"

    # an OFFSET past 64 bits would overflow sqlite
    for params in ({"page": 10**19}, {"limit": 10**6}):
        res = client.get("/api/notes", params=params)
        assert res.status_code == 400
        assert res.json()["code"] == "ValidationError"


def test_comma_separated_tag_query(client):
    a = _create(client, title="a", tags=["one"])
    b = _create(client, title="b", tags=["two"])
    _create(client, title="c", tags=["three"])

    res = client.get("/api/notes", params={"tags": "one,two", "sort": "title", "direction": "ASC"})
    assert [n["id"] for n in res.json()["notes"]] == [a["id"], b["id"]]

    res = client.post("/api/notes", json={"title": "t", "content": "", "tags": ["one,two"]})
    assert res.status_code == 400
    assert "commas" in res.json()["error"]


def test_unexpected_errors_are_json(settings, db, monkeypatch):
    app = create_app(settings, db, Broadcaster())

    def boom(*args, **kwargs):
        raise RuntimeError("kaboom")

    monkeypatch.setattr(app.state.notes, "list_notes", boom)
    with TestClient(app, raise_server_exceptions=False) as c:
        res = c.get("/api/notes")
    assert res.status_code == 500
    assert res.json() == {
        "error": "Internal server error",
        "code": "InternalError",
        "details": {"reason": "RuntimeError"},
    }


def test_update_and_delete(client):
    note = _create(client, tags=["a"])
    res = client.put(f"/api/notes/{note['id']}", json={"content": "edited", "tags": ["b"]})
    assert res.status_code == 200
    assert res.json()["content"] == "edited"
    assert res.json()["tags"] == ["b"]

    res = client.delete(f"/api/notes/{note['id']}")
    assert res.json() == {"success": True, "id": note["id"]}
    assert client.get(f"/api/notes/{note['id']}").status_code == 404


def test_error_mapping(client):
    res = client.get("/api/notes/999")
    assert res.status_code == 404
    assert res.json()["code"] == "NotFoundError"
    assert "999" in res.json()["error"]

    res = client.get("/api/notes/not-a-number")
    assert res.status_code == 400
    assert res.json()["code"] == "ValidationError"

    res = client.post("/api/notes", json={"content": "missing title"})
    assert res.status_code == 400
    assert "error" in res.json()

    note = _create(client)
    res = client.patch(f"/api/notes/{note['id']}/section", json={"section_id": 4242})
    assert res.status_code == 409
    assert res.json()["code"] == "ConstraintError"


def test_color_patches(client):
    a, b = _create(client), _create(client)

    res = client.patch(f"/api/notes/{a['id']}/color", json={"color_hex": "#a7f3d0"})
    assert res.json()["color_hex"] == "#A7F3D0"

    res = client.patch("/api/notes/bulk/color", json={"noteIds": [a["id"], b["id"], 999], "color_hex": "#FCA5A5"})
    assert res.status_code == 200
    assert res.json() == {"success": True, "updated": 2}
    assert client.get(f"/api/notes/{b['id']}").json()["color_hex"] == "#FCA5A5"

    res = client.patch("/api/notes/bulk/color", json={"noteIds": "1,2", "color_hex": "#FCA5A5"})
    assert res.status_code == 400
    res = client.patch("/api/notes/bulk/color", json={"noteIds": [a["id"]]})
    assert res.status_code == 400


def test_export(client):
    a = _create(client, title="First", content="one")
    b = _create(client, title="Second", content="two")

    res = client.post("/api/notes/export", json={"noteIds": [a["id"], b["id"]]})
    assert res.status_code == 200
    assert res.headers["content-type"].startswith("text/markdown")
    assert 'filename="notes.md"' in res.headers["content-disposition"]
    assert res.text.startswith("# Exported Notes")

    res = client.post("/api/notes/export", json={"noteIds": [a["id"]], "format": "html"})
    assert res.headers["content-type"].startswith("text/html")
    assert "<h1>First</h1>" in res.text

    assert client.post("/api/notes/export", json={"noteIds": []}).status_code == 400


def test_sections(client):
    res = client.post("/api/sections", json={"name": "Inbox"})
    assert res.status_code == 201
    section = res.json()

    note = _create(client, section_id=section["id"])
    assert [n["id"] for n in client.get(f"/api/sections/{section['id']}/notes").json()["notes"]] == [note["id"]]

    res = client.put(f"/api/sections/{section['id']}", json={"name": "Done", "order_index": 3})
    assert res.json()["name"] == "Done"
    assert [s["name"] for s in client.get("/api/sections").json()["sections"]] == ["Done"]

    assert client.delete(f"/api/sections/{section['id']}").json() == {"success": True}
    assert client.get(f"/api/notes/{note['id']}").json()["section_id"] is None
    assert client.delete(f"/api/sections/{section['id']}").status_code == 404


def test_tags_and_conversations(client):
    _create(client, tags=["parent", "child"], conversation_id="c1")
    assert client.get("/api/tags").json() == {"tags": ["child", "parent"]}

    ids = {t["name"]: t["id"] for t in client.get("/api/tags/hierarchy").json()["tags"]}
    res = client.patch(f"/api/tags/{ids['child']}/parent", json={"parent_id": ids["parent"]})
    assert res.json()["level"] == 1

    res = client.patch(f"/api/tags/{ids['parent']}/parent", json={"parent_id": ids["child"]})
    assert res.status_code == 400

    convs = client.get("/api/conversations").json()["conversations"]
    assert [(c["conversation_id"], c["note_count"]) for c in convs] == [("c1", 1)]


def test_markdown_render_and_config(client, settings):
    res = client.post("/api/markdown/render", json={"content": "# Hi <img src=x>"})
    assert "<h1>" in res.json()["html"]
    assert "<img" not in res.json()["html"]

    config = client.get("/api/config").json()
    assert config["webPort"] == settings.web_ui_port
    assert config["wsPath"] == "/ws"
    assert config["dbPath"] == str(settings.database_file)
    assert config["websocket"] is True


def test_index_page(client):
    res = client.get("/")
    assert res.status_code == 200
    assert "Sticky Notes" in res.text


def test_websocket_refused_when_disabled(settings, db):
    app = create_app(settings, db, Broadcaster(enabled=False))
    with TestClient(app) as c:
        with pytest.raises(WebSocketDisconnect):
            with c.websocket_connect("/ws") as ws:
                ws.receive_text()
