"""
tests.conftest

Shared fixtures.

Responsibilities:
- Capture emitted log records with an in-memory destination.
- Build the app against a throwaway SQLite database and drive its lifespan.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI

from item_catalog.api.app import create_app
from item_catalog.observability.logging import configure_logging
from item_catalog.observability.sinks import LogSink
from item_catalog.settings import Settings


class RecordingDestination:
    name = "recording"

    def __init__(self) -> None:
        self.records: list[dict[str, Any]] = []

    def emit(self, record: dict[str, Any]) -> None:
        self.records.append(record)

    async def start(self) -> None:
        return None

    async def aclose(self) -> None:
        return None

    def of_type(self, type_: str) -> list[dict[str, Any]]:
        return [r for r in self.records if r.get("type") == type_]

    def at_level(self, level: str) -> list[dict[str, Any]]:
        return [r for r in self.records if r.get("level") == level]

    def clear(self) -> None:
        self.records.clear()


@pytest.fixture
def recorder() -> RecordingDestination:
    return RecordingDestination()


@pytest.fixture
def configured_logging(recorder: RecordingDestination) -> RecordingDestination:
    configure_logging(
        sink=LogSink([recorder]),
        service_name="item-catalog",
        environment="test",
        level="DEBUG",
    )
    return recorder


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        env="test",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'items.db'}",
        axiom_token=None,
        axiom_dataset=None,
    )


@pytest_asyncio.fixture
async def app(settings: Settings, recorder: RecordingDestination) -> AsyncIterator[FastAPI]:
    app = create_app(settings=settings, log_sink=LogSink([recorder]))
    # httpx's ASGITransport does not run lifespan events; enter the lifespan explicitly.
    async with app.router.lifespan_context(app):
        recorder.clear()
        yield app


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncIterator[httpx.AsyncClient]:
    # raise_app_exceptions=False lets tests read the 500 payload of unhandled failures.
    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


# --- Module Notes -----------------------------------------------------------
# The recorder is cleared after startup so tests only see records from their own requests.
