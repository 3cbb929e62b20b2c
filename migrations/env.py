"""Alembic migration environment.

The database URL is injected by issuebook.migrations; model metadata comes
from the issuebook package so autogenerate sees every table.
"""

from __future__ import annotations

from pathlib import Path

from alembic import context
from sqlmodel import SQLModel

from issuebook.database import make_engine
from issuebook import models as _models  # noqa: F401

target_metadata = SQLModel.metadata


def _db_path() -> Path:
    url = context.config.get_main_option("sqlalchemy.url")
    if not url or not url.startswith("sqlite:///"):
        raise RuntimeError(f"Unsupported database URL: {url!r}")
    return Path(url[len("sqlite:///"):])


def run_migrations_online() -> None:
    """Run migrations with a real database connection."""
    engine = make_engine(_db_path())
    with engine.connect() as conn:
        context.configure(
            connection=conn,
            target_metadata=target_metadata,
            # SQLite cannot ALTER most constraints in place
            render_as_batch=True,
        )

        with context.begin_transaction():
            context.run_migrations()


# Alembic calls run_migrations_online or run_migrations_offline depending
# on --sql flag.  We only support online mode.
if context.is_offline_mode():
    raise RuntimeError(
        "Offline migration mode is not supported. "
        "Run without --sql."
    )
else:
    run_migrations_online()
