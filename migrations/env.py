"""Alembic migration environment for the templates and snippets tables."""

from __future__ import annotations

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from newsletter_templates.core.config import get_settings
from newsletter_templates.db import models  # noqa: F401
from newsletter_templates.infrastructure.database.base import Base
from newsletter_templates.infrastructure.database.session import get_engine

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def _async_url() -> str:
    # alembic -x db_url=sqlite+aiosqlite:///./other.db upgrade head
    return context.get_x_argument(as_dictionary=True).get("db_url") or get_settings().database_url


def _sync_url(url: str) -> str:
    return url.replace("sqlite+aiosqlite", "sqlite", 1)


def _configure(**kwargs) -> None:
    url = kwargs.pop("url", None) or _async_url()
    context.configure(
        url=_sync_url(url) if "connection" not in kwargs else None,
        target_metadata=target_metadata,
        compare_type=True,
        # SQLite cannot ALTER most columns in place
        render_as_batch=url.startswith("sqlite"),
        **kwargs,
    )


def run_migrations_offline() -> None:
    _configure(literal_binds=True, dialect_opts={"paramstyle": "named"})
    with context.begin_transaction():
        context.run_migrations()


def _run_with_connection(connection: Connection) -> None:
    _configure(connection=connection, url=str(connection.engine.url))
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    url = _async_url()
    engine: AsyncEngine = get_engine() if url == get_settings().database_url else create_async_engine(url)
    async with engine.connect() as connection:
        await connection.run_sync(_run_with_connection)
    await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
