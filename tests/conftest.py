import pytest
from fastapi.testclient import TestClient

from sticky_notes.app import create_app
from sticky_notes.broadcast import Broadcaster
from sticky_notes.catalog import SectionService, TagService
from sticky_notes.config import Settings
from sticky_notes.db import open_database
from sticky_notes.services import NoteService


@pytest.fixture
def settings(tmp_path, monkeypatch):
    # keep stray config files and STICKY_NOTES_* variables out of the tests
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("STICKY_NOTES_CONFIG", str(tmp_path / "absent.json"))
    for name in ("DB_PATH", "DB_ROOT", "WEB_UI_PORT", "DEFAULT_COLOR", "ENABLE_WEBSOCKET"):
        monkeypatch.delenv(f"STICKY_NOTES_{name}", raising=False)
    return Settings(db_root=tmp_path, db_path="test.db")


@pytest.fixture
def db(settings):
    database = open_database(settings)
    yield database
    database.dispose()


@pytest.fixture
def notes(db):
    return NoteService(db)


@pytest.fixture
def tags(db):
    return TagService(db)


@pytest.fixture
def sections(db):
    return SectionService(db)


@pytest.fixture
def client(settings, db):
    app = create_app(settings, db, Broadcaster())
    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_note(notes):
    def _make(title="note", content="", **fields):
        return notes.create_note({"title": title, "content": content, **fields}).value

    return _make


class FakeSocket:
    """Stands in for a WebSocket; records what the broadcaster sends."""

    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []
        self.accepted = False
        self.closed = False

    async def accept(self):
        self.accepted = True

    async def send_text(self, message):
        if self.fail:
            raise RuntimeError("socket already closed")
        self.sent.append(message)

    async def close(self):
        self.closed = True


@pytest.fixture
def fake_socket():
    return FakeSocket
