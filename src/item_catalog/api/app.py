"""
item_catalog.api.app

FastAPI app factory for the Item Catalog service.

Responsibilities:
- Build the FastAPI application and register routers, middleware and error handlers.
- Configure logging once, from the settings passed in.
- Initialize and dispose shared infrastructure (log sink, DB engine/session factory).
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.responses import Response

from item_catalog import __version__
from item_catalog.api.routers.health import router as health_router
from item_catalog.api.routers.items import router as items_router
from item_catalog.api.routers.test_logging import router as test_logging_router
from item_catalog.db.session import create_engine, create_sessionmaker, init_db, redacted_url
from item_catalog.observability.database import log_connection
from item_catalog.observability.errors import (
    AppError,
    validation_error,
    validation_fields,
)
from item_catalog.observability.logging import configure_logging, log
from item_catalog.observability.middleware import (
    RequestLoggingMiddleware,
    app_error_handler,
    unhandled_error_handler,
)
from item_catalog.observability.sinks import LogSink, build_log_sink
from item_catalog.settings import Settings


async def _request_validation_handler(request: Request, exc: Exception) -> Response:
    # FastAPI-parsed bodies and params get the same classified 400 as hand-parsed ones.
    fields = validation_fields(exc.errors())  # type: ignore[attr-defined]
    return await app_error_handler(request, validation_error("Invalid request", fields))


def create_app(*, settings: Settings, log_sink: LogSink | None = None) -> FastAPI:
    # Destinations are resolved once here and never change for the process lifetime.
    if log_sink is None:
        log_sink, warnings = build_log_sink(settings)
    else:
        warnings = []

    configure_logging(
        sink=log_sink,
        service_name=settings.service_name,
        environment=settings.env,
        level=settings.log_level,
    )
    for warning in warnings:
        log.warn(warning)

    sink = log_sink

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await sink.start()
        # Create the async DB engine and session factory once and stash them on app.state.
        # Routers obtain sessions via dependencies (see `item_catalog.api.deps`).
        engine = create_engine(settings)
        app.state.engine = engine
        app.state.sessionmaker = create_sessionmaker(engine)
        db_fields = {
            "database": redacted_url(settings.database_url),
            "driver": engine.dialect.driver,
        }
        log_connection("connect", **db_fields)
        if settings.env in ("development", "test"):
            # Dev/test convenience: create tables automatically. Prod uses Alembic migrations.
            await init_db(engine)
        log.info("startup", env=settings.env)
        try:
            yield
        finally:
            await engine.dispose()
            log_connection("disconnect", **db_fields)
            log.info("shutdown")
            await sink.aclose()

    app = FastAPI(
        title="Item Catalog",
        version=__version__,
        docs_url="/docs",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.log_sink = sink

    app.add_middleware(RequestLoggingMiddleware)
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    # Registered for Exception, so Starlette runs it in ServerErrorMiddleware (outermost).
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(health_router, tags=["health"])
    app.include_router(items_router)
    app.include_router(test_logging_router)

    return app


# --- Module Notes -----------------------------------------------------------
# This file is intentionally small: app composition stays here; request handling
# lives in routers and the observability middleware.
