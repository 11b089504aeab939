"""
item_catalog.api.deps

FastAPI dependency wiring for the API layer.

Responsibilities:
- Provide dependency functions for settings, DB sessions and repositories.
- Encapsulate app.state access patterns (settings/sessionmaker).
"""

from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from item_catalog.db.repositories.items import ItemRepo
from item_catalog.settings import Settings


def settings_dep(request: Request) -> Settings:
    # The settings instance passed to `create_app`, not a fresh read of the environment.
    return request.app.state.settings  # type: ignore[attr-defined]


def sessionmaker_from_app(request: Request) -> async_sessionmaker[AsyncSession]:
    # Created during app startup (see `item_catalog.api.app.create_app`); absent before it.
    return request.app.state.sessionmaker  # type: ignore[attr-defined]


async def db_session(
    session_factory: async_sessionmaker[AsyncSession] = Depends(sessionmaker_from_app),
) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        yield session


def item_repo(
    request: Request,
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
) -> ItemRepo:
    return ItemRepo(
        session,
        request_id=getattr(request.state, "request_id", None),
        slow_query_ms=settings.slow_query_ms,
    )


# --- Module Notes -----------------------------------------------------------
# Tests override `item_repo` / `db_session` through `app.dependency_overrides`
# when they need to observe persistence calls.
