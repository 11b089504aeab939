"""
item_catalog.observability.diagnostics

Self-check for the logging pipeline, exposed via `/api/test-logging`.

Responsibilities:
- Emit one sample of each record family (levels, errors, request/response, database).
- Generate bursts of synthetic records for verifying remote ingestion.
"""

from __future__ import annotations

import asyncio
import random
from typing import Any

from item_catalog.observability.context import generate_request_id
from item_catalog.observability.database import (
    log_connection,
    log_insert,
    log_select,
)
from item_catalog.observability.errors import AppError, ErrorType, classify
from item_catalog.observability.logging import log, log_error
from item_catalog.settings import Settings


async def run_diagnostics(settings: Settings) -> dict[str, Any]:
    """
    Run every check in order; returns a per-check status map.
    """

    results: dict[str, str] = {}

    if settings.remote_logging_enabled:
        log.info("Axiom is properly configured", test="configuration", status="success")
        results["configuration"] = "ok"
    else:
        log.warn(
            "Axiom is not configured - logs will only go to console",
            test="configuration",
            status="warning",
        )
        results["configuration"] = "console_only"

    log.debug("This is a debug message", test="basic_logging")
    log.info("This is an info message", test="basic_logging", data={"action": "test"})
    log.warn("This is a warning message", test="basic_logging", reason="test_warning")
    results["basic_logging"] = "ok"

    try:
        raise RuntimeError("This is a test error")
    except RuntimeError as e:
        log_error(e, test="error_logging")
    sample = classify(
        "This is a test application error",
        ErrorType.validation,
        400,
        {"validation_field": "email"},
    )
    log.error("Application error occurred", test="error_logging", **sample.log_fields())
    results["error_logging"] = "ok"

    request_id = f"test_{generate_request_id()}"
    log.request("Test API request", method="POST", url="/api/test", request_id=request_id)
    await asyncio.sleep(0.1)
    log.response(
        "Test API response",
        method="POST",
        url="/api/test",
        request_id=request_id,
        status=200,
        duration=100,
    )
    results["request_response_logging"] = "ok"

    async def _rows() -> list[dict[str, Any]]:
        await asyncio.sleep(0.05)
        return [{"id": 1, "name": "test"}]

    async def _fail() -> None:
        raise RuntimeError("Simulated database error")

    await log_select("test_table", _rows, query="SELECT * FROM test_table WHERE id = ?")
    try:
        await log_insert("test_table", _fail, query="INSERT INTO test_table (name) VALUES (?)")
    except AppError:
        # Expected: the wrapper re-raises the driver failure as a classified database error.
        pass
    log_connection("connect", database="test.db", driver="sqlite")
    results["database_logging"] = "ok"

    return results


async def generate_logs(count: int, kind: str) -> int:
    for i in range(count):
        n = i + 1
        if kind == "warn":
            log.warn(
                f"Test warning log {n}",
                test="log_generation",
                iteration=n,
                reason="test_warning",
            )
        elif kind == "error":
            log.error(
                f"Test error log {n}",
                test="log_generation",
                iteration=n,
                error={"name": "TestError", "message": f"Simulated error {n}"},
            )
        elif kind == "info":
            log.info(
                f"Test info log {n}",
                test="log_generation",
                iteration=n,
                data={"random": random.random()},
            )
        elif kind == "debug":
            log.debug(f"Test debug log {n}", test="log_generation", iteration=n)
        else:
            log.info(f"Test log {n}", test="log_generation", iteration=n)
        await asyncio.sleep(0.01)
    return count


# --- Module Notes -----------------------------------------------------------
# Generated records pick up request_id from the bound contextvars, like any other
# record emitted during a request.
