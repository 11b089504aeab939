"""
item_catalog.observability.database

Timing and reporting around persistence calls.

Responsibilities:
- Emit `database` records before and after each operation, with duration and row metrics.
- Flag slow queries.
- Turn driver failures into classified `database` errors (the raw error is only logged).
"""

from __future__ import annotations

import enum
import time
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, Literal, TypeVar

from item_catalog.observability.errors import database_error, log_database_error
from item_catalog.observability.logging import log, log_error

T = TypeVar("T")

DEFAULT_SLOW_QUERY_MS = 1000


class DatabaseOperation(enum.StrEnum):
    select = "select"
    insert = "insert"
    update = "update"
    delete = "delete"
    transaction = "transaction"
    migration = "migration"


def _elapsed_ms(started: float) -> int:
    # Monotonic clock: durations here never go negative.
    return int((time.monotonic() - started) * 1000)


def _result_metrics(result: Any, duration: int) -> dict[str, Any]:
    metrics: dict[str, Any] = {"duration": duration}
    if isinstance(result, Sequence) and not isinstance(result, (str, bytes)):
        metrics["rows_returned"] = len(result)
    elif isinstance(getattr(result, "rowcount", None), int):
        metrics["rows_affected"] = result.rowcount
    return metrics


async def log_operation(
    operation: DatabaseOperation,
    table: str,
    query_fn: Callable[[], Awaitable[T]],
    *,
    query: str | None = None,
    slow_query_ms: int = DEFAULT_SLOW_QUERY_MS,
    **context: Any,
) -> T:
    fields = {"operation": operation.value, "table": table, **context}
    log.database(f"Starting {operation.value} operation on {table}", **fields)

    started = time.monotonic()
    try:
        result = await query_fn()
    except Exception as e:
        duration = _elapsed_ms(started)
        log_database_error(
            e, operation.value, table, query, **context, metrics={"duration": duration}
        )
        raise database_error(
            f"Database {operation.value} operation failed on {table}", operation.value, table
        ) from e

    metrics = _result_metrics(result, _elapsed_ms(started))
    log.database(f"Completed {operation.value} operation on {table}", **fields, metrics=metrics)
    log_slow_query(operation, table, metrics["duration"], threshold=slow_query_ms, **context)
    return result


async def log_select(table: str, query_fn: Callable[[], Awaitable[T]], **context: Any) -> T:
    return await log_operation(DatabaseOperation.select, table, query_fn, **context)


async def log_insert(table: str, query_fn: Callable[[], Awaitable[T]], **context: Any) -> T:
    return await log_operation(DatabaseOperation.insert, table, query_fn, **context)


async def log_update(table: str, query_fn: Callable[[], Awaitable[T]], **context: Any) -> T:
    return await log_operation(DatabaseOperation.update, table, query_fn, **context)


async def log_delete(table: str, query_fn: Callable[[], Awaitable[T]], **context: Any) -> T:
    return await log_operation(DatabaseOperation.delete, table, query_fn, **context)


async def log_transaction(query_fn: Callable[[], Awaitable[T]], **context: Any) -> T:
    return await log_operation(DatabaseOperation.transaction, "transaction", query_fn, **context)


def log_connection(event: Literal["connect", "disconnect", "error"], **context: Any) -> None:
    fields = {"type": "database", **context}
    if event == "connect":
        log.info("Database connection established", db_event="connection", **fields)
    elif event == "disconnect":
        log.info("Database connection closed", db_event="disconnection", **fields)
    else:
        log.error("Database connection error", db_event="connection_error", **fields)


def log_slow_query(
    operation: DatabaseOperation,
    table: str,
    duration: int,
    *,
    threshold: int = DEFAULT_SLOW_QUERY_MS,
    **context: Any,
) -> None:
    if duration <= threshold:
        return
    log.warn(
        f"Slow query detected: {operation.value} on {table}",
        **{
            **context,
            "type": "slow_query",
            "operation": operation.value,
            "table": table,
            "metrics": {"duration": duration},
            "threshold": threshold,
        },
    )


async def log_health_check(check_fn: Callable[[], Awaitable[bool]], **context: Any) -> bool:
    started = time.monotonic()
    try:
        healthy = await check_fn()
    except Exception as e:
        # A failing probe is a result, not an error to propagate.
        log_error(
            e,
            type="database",
            db_event="health_check",
            status="error",
            duration=_elapsed_ms(started),
            **context,
        )
        return False

    fields = {
        "type": "database",
        "db_event": "health_check",
        "duration": _elapsed_ms(started),
        **context,
    }
    if healthy:
        log.info("Database health check passed", status="healthy", **fields)
    else:
        log.warn("Database health check failed", status="unhealthy", **fields)
    return healthy


# --- Module Notes -----------------------------------------------------------
# Repositories call these wrappers around each statement; handlers never touch the
# timing or error translation directly.
