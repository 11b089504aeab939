"""
item_catalog.observability.errors

Error classification and error reporting.

Responsibilities:
- Define the fixed error taxonomy (`ErrorType`) and the `ClassifiedError` value.
- Carry classified errors through `raise` via `AppError`.
- Report classified and unclassified failures as structured log records.
- Translate failures into client-safe payloads.
"""

from __future__ import annotations

import enum
import functools
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, ParamSpec, TypeVar

from item_catalog.observability.logging import log, log_error

P = ParamSpec("P")
T = TypeVar("T")

GENERIC_ERROR_MESSAGE = "Internal server error"
QUERY_LOG_LIMIT = 500


class ErrorType(enum.StrEnum):
    # Values are emitted in log records; treat as a stable contract for dashboards.
    validation = "validation"
    database = "database"
    authentication = "authentication"
    authorization = "authorization"
    not_found = "not_found"
    rate_limit = "rate_limit"
    external_api = "external_api"
    internal = "internal"
    network = "network"
    timeout = "timeout"


@dataclass(frozen=True, slots=True)
class ClassifiedError:
    """
    A failure enriched with category, status code and metadata.

    `operational` marks expected conditions (not found, bad input) as opposed to
    unexpected faults.
    """

    message: str
    category: ErrorType = ErrorType.internal
    status_code: int = 500
    metadata: Mapping[str, Any] = field(default_factory=dict)
    operational: bool = True

    def log_fields(self) -> dict[str, Any]:
        return {
            "error_type": self.category.value,
            "status_code": self.status_code,
            "operational": self.operational,
            **dict(self.metadata),
        }


class AppError(Exception):
    """
    Raisable carrier for a `ClassifiedError`.
    """

    def __init__(self, error: ClassifiedError) -> None:
        super().__init__(error.message)
        self.error = error


def classify(
    message: str,
    category: ErrorType = ErrorType.internal,
    status_code: int = 500,
    metadata: Mapping[str, Any] | None = None,
    operational: bool = True,
) -> ClassifiedError:
    return ClassifiedError(
        message=message,
        category=category,
        status_code=status_code,
        metadata=MappingProxyType(dict(metadata or {})),
        operational=operational,
    )


def classification_of(exc: BaseException) -> ClassifiedError | None:
    # Capability check: anything carrying a ClassifiedError in `.error` counts as classified.
    error = getattr(exc, "error", None)
    return error if isinstance(error, ClassifiedError) else None


def is_classified(exc: BaseException) -> bool:
    return classification_of(exc) is not None


def wrap_unclassified(exc: BaseException, **metadata: Any) -> ClassifiedError:
    """
    Classified failures pass through untouched; anything else becomes internal/500
    with the original message preserved in metadata.
    """

    existing = classification_of(exc)
    if existing is not None:
        return existing
    return classify(
        "Unhandled server error",
        ErrorType.internal,
        500,
        {**metadata, "original_error": str(exc) or type(exc).__name__},
    )


# Presets -------------------------------------------------------------------


def validation_error(message: str, fields: Mapping[str, list[str]] | None = None) -> AppError:
    return AppError(
        classify(message, ErrorType.validation, 400, {"validation_errors": dict(fields or {})})
    )


def validation_fields(errors: Iterable[Mapping[str, Any]]) -> dict[str, list[str]]:
    """
    Group pydantic-style error entries (`loc`, `msg`) by dotted field path.
    """

    fields: dict[str, list[str]] = {}
    for err in errors:
        key = ".".join(str(p) for p in err["loc"]) or "body"
        fields.setdefault(key, []).append(err["msg"])
    return fields


def not_found_error(
    resource: str, id: str | int | None = None, *, message: str | None = None
) -> AppError:
    suffix = f" with id: {id}" if id is not None else ""
    return AppError(
        classify(
            message or f"{resource} not found{suffix}",
            ErrorType.not_found,
            404,
            {"resource": resource, "id": id},
        )
    )


def auth_error(message: str = "Authentication required") -> AppError:
    return AppError(classify(message, ErrorType.authentication, 401))


def authz_error(message: str = "Access denied") -> AppError:
    return AppError(classify(message, ErrorType.authorization, 403))


def database_error(message: str, operation: str, table: str | None = None) -> AppError:
    return AppError(
        classify(message, ErrorType.database, 500, {"operation": operation, "resource": table})
    )


def external_api_error(message: str, api_name: str, status_code: int = 502) -> AppError:
    return AppError(
        classify(message, ErrorType.external_api, status_code, {"resource": api_name})
    )


# Reporting -----------------------------------------------------------------


def log_app_error(
    error: ClassifiedError,
    exc: BaseException | None = None,
    **context: Any,
) -> None:
    fields = {**error.log_fields(), **context}
    if exc is not None:
        log_error(exc, error.message, **fields)
    else:
        log.error(error.message, **fields)


def log_validation_error(
    message: str,
    fields: Mapping[str, list[str]] | None = None,
    **context: Any,
) -> None:
    log.warn(
        f"Validation error: {message}",
        **{
            **context,
            "error_type": ErrorType.validation.value,
            "status_code": 400,
            "validation_errors": dict(fields or {}),
        },
    )


def log_database_error(
    exc: BaseException,
    operation: str,
    table: str | None = None,
    query: str | None = None,
    **context: Any,
) -> None:
    log_error(
        exc,
        **{
            **context,
            "error_type": ErrorType.database.value,
            "operation": operation,
            "resource": table,
            "query": query[:QUERY_LOG_LIMIT] if query else None,
        },
    )


def log_auth_error(message: str, user_id: str | None = None, **context: Any) -> None:
    log.warn(
        f"Authentication error: {message}",
        **context,
        error_type=ErrorType.authentication.value,
        status_code=401,
        user_id=user_id,
    )


def log_authz_error(
    message: str,
    user_id: str | None = None,
    resource: str | None = None,
    action: str | None = None,
    **context: Any,
) -> None:
    log.warn(
        f"Authorization error: {message}",
        **context,
        error_type=ErrorType.authorization.value,
        status_code=403,
        user_id=user_id,
        resource=resource,
        action=action,
    )


def log_external_api_error(
    exc: BaseException,
    api_name: str,
    endpoint: str,
    status_code: int | None = None,
    **context: Any,
) -> None:
    log_error(
        exc,
        **context,
        error_type=ErrorType.external_api.value,
        status_code=status_code or 500,
        resource=api_name,
        endpoint=endpoint,
        external_status_code=status_code,
    )


def report(exc: BaseException, **context: Any) -> ClassifiedError:
    """
    Classify `exc` and write the matching record. Expected client-side conditions
    (operational, < 500) are warnings; everything else is an error report.
    """

    error = wrap_unclassified(exc, **context)
    if error.operational and error.status_code < 500:
        if error.category is ErrorType.validation:
            log_validation_error(
                error.message, error.metadata.get("validation_errors"), **context
            )
        else:
            log.warn(error.message, **{**error.log_fields(), **context})
    else:
        log_app_error(error, exc, **context)
    return error


def error_response(exc: BaseException, **context: Any) -> tuple[dict[str, Any], int]:
    error = report(exc, **context)
    if is_classified(exc) and error.status_code < 500:
        return {"error": error.message}, error.status_code
    return {"error": GENERIC_ERROR_MESSAGE}, error.status_code


def with_error_handling(
    fn: Callable[P, Awaitable[T]], **context: Any
) -> Callable[P, Awaitable[T]]:
    """
    Report any failure raised by `fn`, then re-raise it unchanged.
    """

    @functools.wraps(fn)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
        try:
            return await fn(*args, **kwargs)
        except Exception as e:
            report(e, **context)
            raise

    return wrapper


# --- Module Notes -----------------------------------------------------------
# Never re-wrap: `wrap_unclassified` returns an existing classification as-is, so
# category and status survive however many layers a failure crosses.
