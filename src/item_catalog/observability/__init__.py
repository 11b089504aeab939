"""
item_catalog.observability

Observability package.

Responsibilities:
- Structured logging configuration and the log sink adapter.
- Request lifecycle logging and error classification.
- Database operation timing.
"""

from item_catalog.observability.context import (
    RequestContext,
    RequestIdentity,
    extract_request_context,
    generate_request_id,
    get_request_size,
    request_context_from_headers,
)
from item_catalog.observability.errors import (
    AppError,
    ClassifiedError,
    ErrorType,
    auth_error,
    authz_error,
    classify,
    database_error,
    error_response,
    external_api_error,
    is_classified,
    log_app_error,
    not_found_error,
    validation_error,
    validation_fields,
    with_error_handling,
    wrap_unclassified,
)
from item_catalog.observability.logging import configure_logging, get_logger, log, log_error
from item_catalog.observability.middleware import (
    RequestLoggingMiddleware,
    log_request,
    log_response,
    should_log_request,
    with_logging,
)
from item_catalog.observability.sinks import LogSink, build_log_sink

__all__ = [
    "AppError",
    "ClassifiedError",
    "ErrorType",
    "LogSink",
    "RequestContext",
    "RequestIdentity",
    "RequestLoggingMiddleware",
    "auth_error",
    "authz_error",
    "build_log_sink",
    "classify",
    "configure_logging",
    "database_error",
    "error_response",
    "external_api_error",
    "extract_request_context",
    "generate_request_id",
    "get_logger",
    "get_request_size",
    "is_classified",
    "log",
    "log_app_error",
    "log_error",
    "log_request",
    "log_response",
    "not_found_error",
    "request_context_from_headers",
    "should_log_request",
    "validation_error",
    "validation_fields",
    "with_error_handling",
    "with_logging",
    "wrap_unclassified",
]


# --- Module Notes -----------------------------------------------------------
# Route modules import from here; submodules stay importable for tests.
