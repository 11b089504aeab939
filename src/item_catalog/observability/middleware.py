"""
item_catalog.observability.middleware

Request lifecycle logging: the global interceptor and its helpers.

Responsibilities:
- Log a `request` record on arrival and exactly one `response` record on every exit path.
- Bind the request id into structlog contextvars for all records emitted meanwhile.
- Classify and report failures that escape route handling, then re-raise them.
- Render classified errors and unhandled failures as client-safe responses.
"""

from __future__ import annotations

import enum
import functools
import logging
import re
from collections.abc import Awaitable, Callable
from typing import Any, ParamSpec, TypeVar

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from item_catalog.observability.context import (
    RequestIdentity,
    elapsed_since,
    extract_request_context,
    generate_request_id,
)
from item_catalog.observability.errors import (
    GENERIC_ERROR_MESSAGE,
    error_response,
    log_app_error,
    wrap_unclassified,
)
from item_catalog.observability.logging import log

P = ParamSpec("P")
T = TypeVar("T")

_fallback = logging.getLogger(__name__)

SKIP_PATH_PREFIXES = ("/favicon.ico", "/robots.txt", "/_app/", "/health", "/ping")

# Caller-supplied correlation ids are kept only in this shape.
_UPSTREAM_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


class RequestPhase(enum.StrEnum):
    arrived = "ARRIVED"
    resolving = "RESOLVING"
    completed = "COMPLETED"
    failed = "FAILED"


def should_log_request(path: str) -> bool:
    # Health probes and static-asset requests would drown out real traffic.
    return not path.startswith(SKIP_PATH_PREFIXES)


def log_request(request: Request, request_id: str | None = None) -> str:
    request_id = request_id or generate_request_id()
    try:
        ctx = extract_request_context(request)
        log.request(f"{ctx.method} {ctx.path}", **ctx.as_log_fields(), request_id=request_id)
    except Exception:
        # Logging is best-effort; it must never abort request processing.
        _fallback.exception("failed to log request %s", request_id)
    return request_id


def log_response(
    request: Request,
    request_id: str,
    start_time: int,
    status: int,
    response_size: int | None = None,
) -> None:
    try:
        ctx = extract_request_context(request)
        fields: dict[str, Any] = {
            **ctx.as_log_fields(),
            "request_id": request_id,
            "status": status,
            "duration": elapsed_since(start_time),
        }
        if response_size is not None:
            fields["response_size"] = response_size
        log.response(f"{ctx.method} {ctx.path} - {status}", **fields)
    except Exception:
        _fallback.exception("failed to log response %s", request_id)


def upstream_request_id(request: Request) -> str | None:
    value = request.headers.get("x-request-id")
    return value if value and _UPSTREAM_ID.match(value) else None


def _open_identity(request: Request) -> RequestIdentity:
    # Always a fresh id; a caller's id is only carried alongside it.
    identity = RequestIdentity.open()
    request.state.request_id = identity.request_id
    request.state.start_time = identity.start_time
    return identity


def _bind_identity(request: Request, identity: RequestIdentity) -> None:
    fields: dict[str, Any] = {"request_id": identity.request_id}
    upstream = upstream_request_id(request)
    if upstream is not None:
        fields["upstream_request_id"] = upstream
    structlog.contextvars.bind_contextvars(**fields)


def _failure_context(request: Request, request_id: str) -> dict[str, Any]:
    return {"request_id": request_id, "method": request.method, "url": str(request.url)}


def _response_size(response: Response) -> int | None:
    content_length = response.headers.get("content-length")
    return int(content_length) if content_length and content_length.isdigit() else None


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Global interceptor: ARRIVED -> RESOLVING -> COMPLETED | FAILED.

    - Skipped paths go straight to the downstream app.
    - Failures are logged (completion first, then the classified report) and
      re-raised unchanged; this layer only observes.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if not should_log_request(request.url.path):
            return await call_next(request)

        identity = _open_identity(request)
        request.state.phase = RequestPhase.arrived

        structlog.contextvars.clear_contextvars()
        _bind_identity(request, identity)
        try:
            log_request(request, identity.request_id)
            request.state.phase = RequestPhase.resolving
            try:
                response = await call_next(request)
            except BaseException as e:
                # Cancellation (client disconnect) still closes the pair; only
                # real failures are classified and reported.
                log_response(request, identity.request_id, identity.start_time, 500)
                if isinstance(e, Exception):
                    self._report_failure(request, identity.request_id, e)
                request.state.phase = RequestPhase.failed
                raise

            log_response(
                request,
                identity.request_id,
                identity.start_time,
                response.status_code,
                _response_size(response),
            )
            request.state.phase = RequestPhase.completed
            response.headers["x-request-id"] = identity.request_id
            return response
        finally:
            # Avoid leaking context across requests under async concurrency.
            structlog.contextvars.clear_contextvars()

    @staticmethod
    def _report_failure(request: Request, request_id: str, exc: Exception) -> None:
        try:
            ctx = _failure_context(request, request_id)
            log_app_error(wrap_unclassified(exc, **ctx), exc, **ctx)
            request.state.error_reported = True
        except Exception:
            _fallback.exception("failed to report error for %s", request_id)


async def app_error_handler(request: Request, exc: Exception) -> Response:
    """
    Render a classified error raised by a route handler.
    """

    request_id = getattr(request.state, "request_id", None) or generate_request_id()
    body, status = error_response(exc, **_failure_context(request, request_id))
    return JSONResponse(body, status_code=status)


async def unhandled_error_handler(request: Request, exc: Exception) -> Response:
    """
    Last-resort handler for failures that escaped all route-level handling.
    Never leaks the original message or stack to the client.
    """

    request_id = getattr(request.state, "request_id", None) or generate_request_id()
    if not getattr(request.state, "error_reported", False):
        ctx = _failure_context(request, request_id)
        log_app_error(wrap_unclassified(exc, **ctx), exc, **ctx)
    return JSONResponse(
        {"message": GENERIC_ERROR_MESSAGE, "code": "INTERNAL_ERROR"},
        status_code=500,
    )


def with_logging(
    handler: Callable[P, Awaitable[T]],
    *,
    log_arrival: bool = True,
    log_completion: bool = True,
) -> Callable[P, Awaitable[T]]:
    """
    Wrap a route handler (one that takes a `request: Request` parameter) with
    arrival/completion logging, for apps mounted without `RequestLoggingMiddleware`.

    When the middleware already owns the request (an id is on `request.state`),
    the handler runs unwrapped so each request keeps one id and one record pair.
    """

    @functools.wraps(handler)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
        request = kwargs.get("request") or next(
            (a for a in args if isinstance(a, Request)), None
        )
        if not isinstance(request, Request):
            raise TypeError(f"{handler.__name__} must accept a `request: Request` parameter")
        if getattr(request.state, "request_id", None) is not None:
            return await handler(*args, **kwargs)

        identity = _open_identity(request)
        structlog.contextvars.clear_contextvars()
        _bind_identity(request, identity)
        try:
            if log_arrival:
                log_request(request, identity.request_id)
            try:
                result = await handler(*args, **kwargs)
            except BaseException:
                if log_completion:
                    log_response(request, identity.request_id, identity.start_time, 500)
                raise

            if log_completion:
                status = result.status_code if isinstance(result, Response) else 200
                log_response(request, identity.request_id, identity.start_time, status)
            return result
        finally:
            structlog.contextvars.clear_contextvars()

    return wrapper


# --- Module Notes -----------------------------------------------------------
# Starlette runs `unhandled_error_handler` in ServerErrorMiddleware, outside this
# middleware; `request.state` lives in the ASGI scope, so both see the same request id.
