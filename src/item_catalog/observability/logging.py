"""
item_catalog.observability.logging

Structured logging configuration for the service.

Responsibilities:
- Configure `structlog` so every event becomes a LogRecord handed to the LogSink.
- Stamp the base context (timestamp, level, service, environment, type).
- Provide `log`, a small facade with request/response/database helpers.
"""

from __future__ import annotations

import logging
import sys
import traceback
from typing import Any

import structlog

from item_catalog.observability.sinks import LogSink

_LEVEL_NAMES = {"warning": "warn", "critical": "error", "exception": "error"}


class SinkLogger:
    """
    structlog-compatible logger whose output is the LogSink instead of a stream.

    The last processor returns the event dict, which structlog passes as keyword
    arguments to whichever method was called.
    """

    def __init__(self, sink: LogSink) -> None:
        self._sink = sink

    def msg(self, **record: Any) -> None:
        self._sink.emit(record)

    debug = info = warning = warn = error = critical = exception = fatal = log = msg


class SinkLoggerFactory:
    def __init__(self, sink: LogSink) -> None:
        self._sink = sink

    def __call__(self, *args: Any) -> SinkLogger:
        return SinkLogger(self._sink)


def configure_logging(
    *,
    sink: LogSink,
    service_name: str,
    environment: str,
    level: str,
) -> None:
    """
    Structured JSON records, fanned out through `sink`.
    """

    # Stdlib logging stays on stdout for uvicorn/sqlalchemy and sink-internal failures.
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            _normalize_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
            _add_base_context(service_name, environment),
            structlog.processors.dict_tracebacks,
            structlog.processors.EventRenamer("message"),
        ],
        logger_factory=SinkLoggerFactory(sink),
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.INFO)
        ),
        # Loggers resolve the sink at bind time; caching would pin the first one configured.
        cache_logger_on_first_use=False,
    )


def _normalize_level(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    level = event_dict.get("level", "info")
    event_dict["level"] = _LEVEL_NAMES.get(level, level)
    return event_dict


def _add_base_context(service_name: str, environment: str):
    def processor(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        event_dict.setdefault("service", service_name)
        event_dict.setdefault("environment", environment)
        event_dict.setdefault("type", "plain")
        return event_dict

    return processor


def get_logger(name: str) -> structlog.typing.FilteringBoundLogger:
    return structlog.get_logger(name)


class EventLogger:
    """
    Level helpers plus typed helpers for request, response and database records.
    """

    def __init__(self, name: str = "item_catalog") -> None:
        self._name = name

    @property
    def _log(self) -> Any:
        return structlog.get_logger(self._name)

    def debug(self, message: str, **context: Any) -> None:
        self._log.debug(message, **context)

    def info(self, message: str, **context: Any) -> None:
        self._log.info(message, **context)

    def warn(self, message: str, **context: Any) -> None:
        self._log.warning(message, **context)

    def error(self, message: str, **context: Any) -> None:
        self._log.error(message, **context)

    def request(self, message: str, **context: Any) -> None:
        self._log.info(f"[REQUEST] {message}", **{"type": "request", **context})

    def response(self, message: str, **context: Any) -> None:
        self._log.info(f"[RESPONSE] {message}", **{"type": "response", **context})

    def database(self, message: str, **context: Any) -> None:
        self._log.info(f"[DATABASE] {message}", **{"type": "database", **context})


log = EventLogger()


def log_error(exc: BaseException, message: str | None = None, **context: Any) -> None:
    # Error records always carry name/message/stack, whether or not exc_info is rendered.
    error = {
        "name": type(exc).__name__,
        "message": str(exc),
        "stack": _format_stack(exc),
    }
    log.error(message or str(exc) or type(exc).__name__, **{**context, "error": error})


def _format_stack(exc: BaseException) -> str:
    return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))


# --- Module Notes -----------------------------------------------------------
# Request-scoped metadata (request_id) is bound via contextvars in
# `observability.middleware`, so helpers here never take it as a parameter.
