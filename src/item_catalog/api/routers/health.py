"""
item_catalog.api.routers.health

Health and readiness endpoints.

Responsibilities:
- Provide liveness probe (`/health`).
- Provide readiness probe (`/health/ready`) with DB connectivity validation.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from starlette.status import HTTP_503_SERVICE_UNAVAILABLE

from item_catalog.api.deps import sessionmaker_from_app
from item_catalog.db.session import ping
from item_catalog.observability.database import log_health_check

router = APIRouter(prefix="/health")


@router.get("")
async def health() -> dict[str, str]:
    # Liveness: process is up and serving HTTP.
    return {"status": "ok"}


@router.get("/ready")
async def ready(
    response: Response,
    session_factory: async_sessionmaker[AsyncSession] = Depends(sessionmaker_from_app),
) -> dict[str, str]:
    # Readiness: verify critical dependency (DB) is reachable.
    if await log_health_check(lambda: ping(session_factory)):
        return {"status": "ready"}
    response.status_code = HTTP_503_SERVICE_UNAVAILABLE
    return {"status": "unavailable"}


# --- Module Notes -----------------------------------------------------------
# Both paths sit under the `/health` prefix, which the request logger skips.
