"""
alembic.env

Migration environment for the items schema.

Responsibilities:
- Point autogenerate at `item_catalog.db.models.Base.metadata`.
- Run migrations through the same async driver the service uses.

Notes:
- Executed by Alembic only; the FastAPI runtime never imports it.
"""

from __future__ import annotations

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine

from item_catalog.db.models import Base
from item_catalog.settings import Settings

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

# ITEMS_DATABASE_URL, same as the service.
DATABASE_URL = Settings().database_url


def run_migrations_offline() -> None:
    # Emit SQL without connecting.
    context.configure(
        url=DATABASE_URL,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def _migrate(connection: Connection) -> None:
    context.configure(connection=connection, target_metadata=target_metadata)
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    engine = create_async_engine(DATABASE_URL, poolclass=pool.NullPool)
    async with engine.connect() as connection:
        await connection.run_sync(_migrate)
    await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
