"""
tests.test_errors

Error classification, reporting levels and client-safe payloads.
"""

from __future__ import annotations

import pytest

from item_catalog.observability.errors import (
    GENERIC_ERROR_MESSAGE,
    AppError,
    ErrorType,
    auth_error,
    authz_error,
    classify,
    database_error,
    error_response,
    external_api_error,
    is_classified,
    log_database_error,
    not_found_error,
    report,
    validation_error,
    with_error_handling,
    wrap_unclassified,
)


def test_taxonomy_is_fixed() -> None:
    assert {t.value for t in ErrorType} == {
        "validation",
        "database",
        "authentication",
        "authorization",
        "not_found",
        "rate_limit",
        "external_api",
        "internal",
        "network",
        "timeout",
    }


def test_classify_defaults_to_internal_500() -> None:
    error = classify("boom")

    assert error.category is ErrorType.internal
    assert error.status_code == 500
    assert error.operational is True
    assert dict(error.metadata) == {}


def test_classified_metadata_is_read_only() -> None:
    error = classify("x", metadata={"a": 1})

    with pytest.raises(TypeError):
        error.metadata["a"] = 2  # type: ignore[index]


@pytest.mark.parametrize(
    ("exc", "category", "status"),
    [
        (validation_error("bad", {"name": ["required"]}), ErrorType.validation, 400),
        (not_found_error("Item", 3), ErrorType.not_found, 404),
        (auth_error(), ErrorType.authentication, 401),
        (authz_error(), ErrorType.authorization, 403),
        (database_error("failed", "select", "items"), ErrorType.database, 500),
        (external_api_error("upstream", "axiom"), ErrorType.external_api, 502),
    ],
)
def test_presets(exc: AppError, category: ErrorType, status: int) -> None:
    assert exc.error.category is category
    assert exc.error.status_code == status
    assert str(exc) == exc.error.message


def test_not_found_message_includes_id() -> None:
    assert not_found_error("Item", 42).error.message == "Item not found with id: 42"
    assert not_found_error("Item").error.message == "Item not found"


def test_wrap_unclassified_never_rewraps() -> None:
    exc = not_found_error("Item", 1)

    assert wrap_unclassified(exc) is exc.error


def test_wrap_unclassified_preserves_original_message() -> None:
    error = wrap_unclassified(KeyError("missing"), request_id="req_1")

    assert error.category is ErrorType.internal
    assert error.status_code == 500
    assert error.message == "Unhandled server error"
    assert error.metadata["original_error"] == "'missing'"
    assert error.metadata["request_id"] == "req_1"


def test_anything_carrying_a_classification_counts() -> None:
    class Foreign(Exception):
        error = classify("foreign", ErrorType.timeout, 504)

    assert is_classified(Foreign())
    assert wrap_unclassified(Foreign()).category is ErrorType.timeout
    assert not is_classified(ValueError("plain"))


def test_report_validation_is_a_warning(configured_logging) -> None:
    report(validation_error("Name is required", {"name": ["required"]}), request_id="req_v")

    [record] = configured_logging.records
    assert record["level"] == "warn"
    assert record["message"] == "Validation error: Name is required"
    assert record["error_type"] == "validation"
    assert record["validation_errors"] == {"name": ["required"]}
    assert record["request_id"] == "req_v"


def test_report_not_found_is_a_warning(configured_logging) -> None:
    report(not_found_error("Item", 9))

    [record] = configured_logging.records
    assert record["level"] == "warn"
    assert record["error_type"] == "not_found"
    assert record["status_code"] == 404


def test_report_unclassified_is_an_error_with_stack(configured_logging) -> None:
    try:
        raise ZeroDivisionError("division by zero")
    except ZeroDivisionError as e:
        error = report(e)

    assert error.status_code == 500
    [record] = configured_logging.records
    assert record["level"] == "error"
    assert record["error_type"] == "internal"
    assert record["error"]["name"] == "ZeroDivisionError"
    assert "ZeroDivisionError" in record["error"]["stack"]


def test_error_response_exposes_operational_messages(configured_logging) -> None:
    body, status = error_response(not_found_error("Item", 5))

    assert status == 404
    assert body == {"error": "Item not found with id: 5"}


def test_error_response_hides_internal_details(configured_logging) -> None:
    body, status = error_response(RuntimeError("connection string leaked"))

    assert status == 500
    assert body == {"error": GENERIC_ERROR_MESSAGE}


def test_error_response_hides_classified_server_errors(configured_logging) -> None:
    body, status = error_response(database_error("deadlock on items", "update", "items"))

    assert status == 500
    assert body == {"error": GENERIC_ERROR_MESSAGE}


def test_log_database_error_truncates_query(configured_logging) -> None:
    log_database_error(RuntimeError("syntax"), "select", "items", "SELECT " + "x" * 1000)

    [record] = configured_logging.records
    assert record["error_type"] == "database"
    assert len(record["query"]) == 500


@pytest.mark.asyncio
async def test_with_error_handling_reports_and_reraises(configured_logging) -> None:
    async def flaky() -> None:
        raise ConnectionError("reset by peer")

    wrapped = with_error_handling(flaky, component="importer")

    with pytest.raises(ConnectionError):
        await wrapped()

    [record] = configured_logging.records
    assert record["level"] == "error"
    assert record["component"] == "importer"


@pytest.mark.asyncio
async def test_with_error_handling_passes_results_through(configured_logging) -> None:
    async def ok() -> int:
        return 7

    assert await with_error_handling(ok)() == 7
    assert configured_logging.records == []


# --- Module Notes -----------------------------------------------------------
# Reporting level follows the classification: client mistakes are warnings,
# server faults are errors.
