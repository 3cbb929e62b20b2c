"""Database engine and session management using SQLModel."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine


def make_engine(db_path: Optional[Path] = None) -> Engine:
    """Create an engine for the SQLite file at db_path.

    With no path the database lives in memory; StaticPool keeps the single
    connection alive so every session sees the same data.
    """
    if db_path is None:
        engine = create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        db_path.parent.mkdir(parents=True, exist_ok=True)
        # check_same_thread=False: the save scheduler flushes from a timer thread
        engine = create_engine(
            f"sqlite:///{db_path}", connect_args={"check_same_thread": False}
        )

    wal = db_path is not None

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragmas(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        if wal:
            cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


def init_db(engine: Engine) -> None:
    """Create database tables."""
    # Import models to ensure they are registered with SQLModel.metadata
    from . import models  # noqa: F401

    SQLModel.metadata.create_all(engine)
