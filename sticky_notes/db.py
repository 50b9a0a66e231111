from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from sqlalchemy import event, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from . import models  # noqa: F401  registers the tables on SQLModel.metadata
from .config import Settings
from .errors import InternalError, translate_store_error

logger = logging.getLogger(__name__)

# columns added after the first release; (table, column, DDL type)
_LEGACY_COLUMNS = [
    ("notes", "color_hex", "VARCHAR(7) DEFAULT '#FFE999'"),
    ("notes", "section_id", "INTEGER REFERENCES sections(id) ON DELETE SET NULL"),
    ("tags", "parent_id", "INTEGER REFERENCES tags(id) ON DELETE SET NULL"),
]


class Database:
    """Owns the engine. One instance per process, passed to the services."""

    def __init__(self, url: str, timeout_ms: int = 10000, echo: bool = False):
        self.url = url
        self.timeout_ms = timeout_ms
        self.in_memory = url in ("sqlite://", "sqlite:///:memory:")

        kwargs = {}
        if self.in_memory:
            # one shared connection, otherwise every checkout sees an empty db
            kwargs["poolclass"] = StaticPool
        else:
            Path(url.removeprefix("sqlite:///")).parent.mkdir(parents=True, exist_ok=True)

        self.engine: Engine = create_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False, "timeout": timeout_ms / 1000},
            **kwargs,
        )
        event.listen(self.engine, "connect", self._on_connect)
        event.listen(self.engine, "begin", self._on_begin)

    def _on_connect(self, dbapi_conn, _record) -> None:
        # let SQLAlchemy emit BEGIN itself so reads share one snapshot
        dbapi_conn.isolation_level = None
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys = ON")
        cursor.execute(f"PRAGMA busy_timeout = {int(self.timeout_ms)}")
        if not self.in_memory:
            cursor.execute("PRAGMA journal_mode = WAL")
            cursor.execute("PRAGMA synchronous = NORMAL")
        cursor.close()

    @staticmethod
    def _on_begin(conn) -> None:
        conn.exec_driver_sql("BEGIN")

    def init_schema(self) -> None:
        logger.info("Initializing database schema at %s", self.url)
        SQLModel.metadata.create_all(self.engine)

    def upgrade_legacy_schema(self) -> list[str]:
        """Add the columns and indexes a pre-sections database is missing.

        Returns the ``table.column`` names that were added.
        """
        SQLModel.metadata.create_all(self.engine)
        added = []
        with self.engine.begin() as conn:
            inspector = inspect(conn)
            for table, column, ddl in _LEGACY_COLUMNS:
                existing = {c["name"] for c in inspector.get_columns(table)}
                if column in existing:
                    continue
                conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {column} {ddl}"))
                added.append(f"{table}.{column}")
                logger.info("Added column %s.%s", table, column)
            for table in SQLModel.metadata.sorted_tables:
                for index in table.indexes:
                    index.create(conn, checkfirst=True)
        return added

    def dispose(self) -> None:
        self.engine.dispose()

    def session(self) -> Session:
        # keep objects alive after commit so returned models retain values
        return Session(self.engine, expire_on_commit=False)

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """One transaction: commit on success, roll back on any error."""
        session = self.session()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            error = translate_store_error(exc)
            if isinstance(error, InternalError):
                logger.error("Store error: %s", exc)
            else:
                logger.warning("Store error: %s", exc)
            raise error from exc
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


def open_database(settings: Settings, url: Optional[str] = None) -> Database:
    db = Database(url or settings.database_url, timeout_ms=settings.db_timeout, echo=settings.db_verbose)
    db.init_schema()
    return db
