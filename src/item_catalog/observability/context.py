"""
item_catalog.observability.context

Per-request identity and context extraction.

Responsibilities:
- Generate correlation ids (`req_<epoch-ms>_<suffix>`) for log tracing.
- Derive a read-only `RequestContext` from an inbound Starlette request.
"""

from __future__ import annotations

import random
import string
import time
from collections.abc import Mapping
from dataclasses import asdict, dataclass
from typing import Any
from urllib.parse import urlsplit

from starlette.requests import Request

_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits
_SUFFIX_LENGTH = 9


def now_ms() -> int:
    return int(time.time() * 1000)


def generate_request_id() -> str:
    # Uniqueness only needs to hold for log correlation, not for security.
    suffix = "".join(random.choices(_SUFFIX_ALPHABET, k=_SUFFIX_LENGTH))
    return f"req_{now_ms()}_{suffix}"


@dataclass(frozen=True, slots=True)
class RequestIdentity:
    """
    Correlation token plus start marker for a single request.
    """

    request_id: str
    start_time: int

    @classmethod
    def open(cls, request_id: str | None = None) -> RequestIdentity:
        return cls(request_id=request_id or generate_request_id(), start_time=now_ms())

    def elapsed_ms(self) -> int:
        return elapsed_since(self.start_time)


def elapsed_since(start_time: int) -> int:
    # Wall-clock subtraction; clamp so clock adjustments never yield a negative duration.
    return max(0, now_ms() - start_time)


@dataclass(frozen=True, slots=True)
class RequestContext:
    method: str
    url: str
    path: str
    query: str
    user_agent: str | None = None
    ip: str | None = None
    content_type: str | None = None
    referer: str | None = None

    def as_log_fields(self) -> dict[str, Any]:
        # Absent optional fields are dropped rather than logged as null.
        return {k: v for k, v in asdict(self).items() if v is not None}


def extract_request_context(request: Request) -> RequestContext:
    headers = request.headers
    return RequestContext(
        method=request.method,
        url=str(request.url),
        path=request.url.path,
        query=request.url.query,
        user_agent=headers.get("user-agent"),
        ip=request.client.host if request.client else None,
        content_type=headers.get("content-type"),
        referer=headers.get("referer"),
    )


def request_context_from_headers(
    method: str,
    url: str,
    headers: Mapping[str, str] | None = None,
) -> RequestContext:
    """
    Build a context for manual logging outside the request pipeline.
    """

    headers = {k.lower(): v for k, v in (headers or {}).items()}
    parts = urlsplit(url)
    forwarded = headers.get("x-forwarded-for")
    # First hop of X-Forwarded-For is the original client.
    ip = forwarded.split(",")[0].strip() if forwarded else headers.get("x-real-ip")
    return RequestContext(
        method=method,
        url=url,
        path=parts.path,
        query=parts.query,
        user_agent=headers.get("user-agent"),
        ip=ip,
        content_type=headers.get("content-type"),
        referer=headers.get("referer"),
    )


def get_request_size(request: Request) -> int | None:
    content_length = request.headers.get("content-length")
    if content_length is None or not content_length.isdigit():
        return None
    return int(content_length)


# --- Module Notes -----------------------------------------------------------
# The identity is stored on `request.state` by the middleware so exception handlers
# running outside the middleware can still correlate their records.
