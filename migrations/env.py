"""Alembic environment for HandyHub.

At app startup ``database.init_db`` hands over its open connection through
``config.attributes["connection"]``; from the CLI (``alembic upgrade head``)
an engine is built from the app settings. Batch mode keeps SQLite ALTERs
working.
"""

from __future__ import annotations

from alembic import context
from sqlalchemy import create_engine, pool
from sqlmodel import SQLModel

from handyhub.db_models import *  # noqa: F401, F403: register all tables

config = context.config
target_metadata = SQLModel.metadata


def _cli_url() -> str:
    url = config.get_main_option("sqlalchemy.url")
    if url:
        return url
    from handyhub.config import settings

    db_path = settings.database_url
    if db_path.startswith("sqlite"):
        return db_path.replace("sqlite+aiosqlite", "sqlite")
    return f"sqlite:///{db_path}"


def _run(connection) -> None:
    context.configure(connection=connection, target_metadata=target_metadata, render_as_batch=True)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_offline() -> None:
    context.configure(
        url=_cli_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connection = config.attributes.get("connection")
    if connection is not None:
        _run(connection)
        return
    engine = create_engine(_cli_url(), poolclass=pool.NullPool)
    with engine.connect() as connection:
        _run(connection)


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
