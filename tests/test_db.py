import sqlite3

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from sticky_notes.db import Database
from sticky_notes.errors import (
    ConstraintError,
    InternalError,
    StoreBusyError,
    translate_store_error,
)
from sticky_notes.services import NoteService

LEGACY_SCHEMA = """
CREATE TABLE notes (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL,
    content TEXT NOT NULL,
    conversation_id TEXT NOT NULL,
    created_at INTEGER NOT NULL,
    updated_at INTEGER NOT NULL
);
CREATE TABLE tags (id INTEGER PRIMARY KEY AUTOINCREMENT, name TEXT UNIQUE NOT NULL);
CREATE TABLE note_tags (note_id INTEGER, tag_id INTEGER, PRIMARY KEY (note_id, tag_id));
INSERT INTO notes (title, content, conversation_id, created_at, updated_at) VALUES ('old', 'x', 'c', 1, 1);
"""


def test_pragmas_are_applied(db):
    with db.session_scope() as s:
        assert s.connection().exec_driver_sql("PRAGMA foreign_keys").scalar() == 1
        assert s.connection().exec_driver_sql("PRAGMA busy_timeout").scalar() == 10000


def test_in_memory_database_is_shared_across_sessions():
    db = Database("sqlite://")
    db.init_schema()
    notes = NoteService(db)
    created = notes.create_note({"title": "t", "content": ""}).value
    assert notes.get_note(created.id).title == "t"
    db.dispose()


def test_upgrade_legacy_schema(tmp_path):
    path = tmp_path / "legacy.db"
    conn = sqlite3.connect(path)
    conn.executescript(LEGACY_SCHEMA)
    conn.close()

    db = Database(f"sqlite:///{path}")
    assert db.upgrade_legacy_schema() == ["notes.color_hex", "notes.section_id", "tags.parent_id"]
    assert NoteService(db).get_note(1).color_hex == "#FFE999"
    # second run is a no-op
    assert db.upgrade_legacy_schema() == []
    db.dispose()


@pytest.mark.parametrize(
    "exc,expected",
    [
        (IntegrityError("INSERT", {}, sqlite3.IntegrityError("UNIQUE constraint failed")), ConstraintError),
        (OperationalError("UPDATE", {}, sqlite3.OperationalError("database is locked")), StoreBusyError),
        (OperationalError("SELECT", {}, sqlite3.OperationalError("no such table: x")), InternalError),
    ],
)
def test_store_errors_are_translated(exc, expected):
    error = translate_store_error(exc)
    assert type(error) is expected
    assert error.to_dict()["code"] == expected.__name__
