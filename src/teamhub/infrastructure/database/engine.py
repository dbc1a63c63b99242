"""Database engine setup for SQLite with WAL mode.

The DB is stored at ``{root}/.teamhub/{name}.db``. SQLAlchemy Core (not
ORM) is used: aggregates are loaded into immutable snapshots explicitly,
so there is no identity map or lazy loading to reason about.

Every transaction opens with ``BEGIN IMMEDIATE``. The write lock is held
from the first read, so a load-check-write sequence (the capacity check
in a team join) is atomic across every process sharing the file; a
second writer waits up to ``busy_timeout`` for the first to commit.
pysqlite's own implicit BEGIN is switched off so it cannot start a
deferred transaction first.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from sqlalchemy import Connection, create_engine, event
from sqlalchemy.engine import Engine

from teamhub.infrastructure.database.schema import metadata

DATA_DIRNAME = ".teamhub"
BUSY_TIMEOUT_MS = 5000


def create_db_engine(db_path: Path) -> Engine:
    """Create a SQLite engine with WAL mode, foreign keys and immediate transactions."""
    engine = create_engine(
        f"sqlite:///{db_path}",
        echo=False,
        connect_args={"check_same_thread": False, "timeout": BUSY_TIMEOUT_MS / 1000},
    )

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn: Any, _: Any) -> None:
        dbapi_conn.isolation_level = None
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute(f"PRAGMA busy_timeout={BUSY_TIMEOUT_MS}")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn: Connection) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def init_database(root: Path, name: str = "teamhub") -> Engine:
    """Initialize the database at ``{root}/.teamhub/{name}.db``.

    Creates the data directory and every table in :data:`schema.metadata`.
    Idempotent: safe to call on an existing store.
    """
    data_dir = root / DATA_DIRNAME
    data_dir.mkdir(parents=True, exist_ok=True)

    engine = create_db_engine(data_dir / f"{name}.db")
    metadata.create_all(engine)
    return engine
