"""
item_catalog.db.session

Async SQLAlchemy engine + session factory helpers.

Responsibilities:
- Create the async engine from settings.
- Create the async sessionmaker with safe defaults.
- Render a password-free URL for log records.
- Create missing tables for development and test runs.
"""

from __future__ import annotations

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from item_catalog.db.models import Base
from item_catalog.settings import Settings


def create_engine(settings: Settings) -> AsyncEngine:
    # pool_pre_ping helps detect stale connections in long-lived processes.
    return create_async_engine(
        settings.database_url,
        pool_pre_ping=True,
    )


def create_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # expire_on_commit=False avoids surprising lazy loads after commits.
    return async_sessionmaker(
        bind=engine,
        expire_on_commit=False,
        autoflush=False,
    )


def redacted_url(database_url: str) -> str:
    return make_url(database_url).render_as_string(hide_password=True)


async def ping(session_factory: async_sessionmaker[AsyncSession]) -> bool:
    async with session_factory() as session:
        await session.execute(text("SELECT 1"))
    return True


async def init_db(engine: AsyncEngine) -> None:
    # Production schemas come from Alembic; this only fills in tables that are missing.
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# --- Module Notes -----------------------------------------------------------
# The API layer scopes sessions per request via FastAPI dependencies (`api.deps.db_session`).
