"""
tests.test_sinks

Destination fan-out, console rendering and Axiom batching.
"""

from __future__ import annotations

import asyncio
import io
import json
from typing import Any

import httpx
import pytest

from item_catalog.observability.sinks import (
    AxiomDestination,
    ConsoleDestination,
    LogSink,
    build_log_sink,
)
from item_catalog.settings import Settings


class _Collect:
    def __init__(self, name: str) -> None:
        self.name = name
        self.records: list[dict[str, Any]] = []

    def emit(self, record: dict[str, Any]) -> None:
        self.records.append(record)

    async def start(self) -> None:
        return None

    async def aclose(self) -> None:
        return None


class _Explodes(_Collect):
    def emit(self, record: dict[str, Any]) -> None:
        raise RuntimeError("destination down")

    async def aclose(self) -> None:
        raise RuntimeError("close failed")


def _ingest_recorder(status: int = 200):
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(status, json={"ingested": 1})

    return calls, httpx.MockTransport(handler)


def test_failing_destination_does_not_block_the_others() -> None:
    first, second = _Collect("first"), _Collect("second")
    sink = LogSink([first, _Explodes("broken"), second])

    sink.emit({"message": "hello", "level": "info"})

    assert first.records == [{"message": "hello", "level": "info"}]
    assert second.records == [{"message": "hello", "level": "info"}]


def test_destinations_get_independent_copies() -> None:
    class Mutates(_Collect):
        def emit(self, record: dict[str, Any]) -> None:
            record["tampered"] = True
            super().emit(record)

    mutating, clean = Mutates("mutates"), _Collect("clean")
    sink = LogSink([mutating, clean])

    sink.emit({"message": "x"})

    assert "tampered" not in clean.records[0]


def test_duplicate_emits_are_delivered_twice() -> None:
    dest = _Collect("dest")
    sink = LogSink([dest])
    record = {"message": "same", "level": "info"}

    sink.emit(record)
    sink.emit(record)

    assert len(dest.records) == 2


@pytest.mark.asyncio
async def test_sink_close_survives_failing_destination() -> None:
    dest = _Collect("dest")
    sink = LogSink([_Explodes("broken"), dest])

    await sink.aclose()


def test_console_writes_one_json_object_per_line() -> None:
    stream = io.StringIO()
    console = ConsoleDestination(stream=stream)

    console.emit({"message": "first", "level": "info", "service": "item-catalog"})
    console.emit({"message": "second", "level": "debug"})

    lines = stream.getvalue().splitlines()
    assert [json.loads(line)["message"] for line in lines] == ["first", "second"]
    assert json.loads(lines[0])["service"] == "item-catalog"


def test_console_respects_min_level() -> None:
    stream = io.StringIO()
    console = ConsoleDestination(stream=stream, min_level="warn")

    console.emit({"message": "quiet", "level": "info"})
    console.emit({"message": "loud", "level": "error"})

    assert [json.loads(line)["message"] for line in stream.getvalue().splitlines()] == ["loud"]


@pytest.mark.asyncio
async def test_axiom_posts_batch_with_bearer_token() -> None:
    calls, transport = _ingest_recorder()
    async with httpx.AsyncClient(transport=transport, base_url="https://axiom.test") as http:
        axiom = AxiomDestination(token="xaat-secret", dataset="items", http=http)
        axiom.emit({"message": "one", "level": "info"})
        axiom.emit({"message": "two", "level": "error"})
        # Below the destination threshold: never shipped.
        axiom.emit({"message": "noise", "level": "debug"})

        sent = await axiom.flush()

    assert sent == 2
    [call] = calls
    assert call.method == "POST"
    assert call.url.path == "/v1/datasets/items/ingest"
    assert call.headers["authorization"] == "Bearer xaat-secret"
    assert call.headers["content-type"] == "application/json"
    assert [r["message"] for r in json.loads(call.content)] == ["one", "two"]
    assert axiom.buffered == 0


@pytest.mark.asyncio
async def test_axiom_empty_flush_makes_no_request() -> None:
    calls, transport = _ingest_recorder()
    async with httpx.AsyncClient(transport=transport, base_url="https://axiom.test") as http:
        axiom = AxiomDestination(token="t", dataset="items", http=http)
        assert await axiom.flush() == 0

    assert calls == []


@pytest.mark.asyncio
async def test_axiom_ingest_failure_is_swallowed() -> None:
    calls, transport = _ingest_recorder(status=503)
    async with httpx.AsyncClient(transport=transport, base_url="https://axiom.test") as http:
        axiom = AxiomDestination(token="t", dataset="items", http=http)
        axiom.emit({"message": "lost", "level": "info"})

        assert await axiom.flush() == 0

    assert len(calls) == 1
    assert axiom.buffered == 0


@pytest.mark.asyncio
async def test_axiom_full_batch_triggers_flush_and_close_drains_rest() -> None:
    calls, transport = _ingest_recorder()
    async with httpx.AsyncClient(transport=transport, base_url="https://axiom.test") as http:
        axiom = AxiomDestination(
            token="t", dataset="items", http=http, batch_size=2, flush_interval=60.0
        )
        await axiom.start()
        axiom.emit({"message": "m0", "level": "info"})
        axiom.emit({"message": "m1", "level": "info"})
        # Let the scheduled flush take the full batch before the next record arrives.
        await asyncio.sleep(0)
        axiom.emit({"message": "m2", "level": "info"})

        await axiom.aclose()

    shipped = [r["message"] for call in calls for r in json.loads(call.content)]
    assert shipped == ["m0", "m1", "m2"]
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_axiom_unserializable_record_does_not_sink_the_batch() -> None:
    calls, transport = _ingest_recorder()
    async with httpx.AsyncClient(transport=transport, base_url="https://axiom.test") as http:
        axiom = AxiomDestination(token="t", dataset="items", http=http)
        axiom.emit({"message": "good-1", "level": "info"})
        # Tuple keys cannot be encoded as JSON object keys.
        axiom.emit({"message": "bad", "level": "info", "data": {(1, 2): "x"}})
        axiom.emit({"message": "good-2", "level": "info"})

        sent = await axiom.flush()

    assert sent == 2
    [call] = calls
    assert [r["message"] for r in json.loads(call.content)] == ["good-1", "good-2"]


@pytest.mark.asyncio
async def test_axiom_flush_loop_survives_a_failed_flush() -> None:
    shipped: list[str] = []
    attempts = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal attempts
        attempts += 1
        if attempts == 1:
            raise RuntimeError("transport bug")
        shipped.extend(r["message"] for r in json.loads(request.content))
        return httpx.Response(200)

    transport = httpx.MockTransport(handler)
    async with httpx.AsyncClient(transport=transport, base_url="https://axiom.test") as http:
        axiom = AxiomDestination(token="t", dataset="items", http=http, flush_interval=0.01)
        await axiom.start()
        axiom.emit({"message": "lost", "level": "info"})
        await asyncio.sleep(0.1)
        axiom.emit({"message": "after", "level": "info"})
        await asyncio.sleep(0.1)

        # Shipped by the background loop, before close drains anything.
        assert shipped == ["after"]
        await axiom.aclose()

    assert attempts == 2


def test_axiom_buffer_drops_oldest_when_full() -> None:
    axiom = AxiomDestination(token="t", dataset="items", batch_size=100, max_buffer=2)

    for n in range(3):
        axiom.emit({"message": f"m{n}", "level": "info"})

    assert axiom.buffered == 2


def test_build_log_sink_without_token_is_console_only() -> None:
    sink, warnings = build_log_sink(Settings(axiom_token=None))

    assert [d.name for d in sink.destinations] == ["console"]
    assert warnings == ["Axiom not configured. Logs will only be sent to console."]


def test_build_log_sink_with_token_defaults_dataset() -> None:
    sink, warnings = build_log_sink(Settings(axiom_token="xaat-1", axiom_dataset=None))

    assert [d.name for d in sink.destinations] == ["console", "axiom"]
    assert sink.destinations[1].ingest_path == "/v1/datasets/default/ingest"
    assert warnings == ["ITEMS_AXIOM_DATASET is not set; using dataset 'default'"]


def test_build_log_sink_fully_configured_has_no_warnings() -> None:
    sink, warnings = build_log_sink(Settings(axiom_token="xaat-1", axiom_dataset="items"))

    assert sink.destinations[1].ingest_path == "/v1/datasets/items/ingest"
    assert warnings == []


def test_token_is_hidden_from_settings_repr() -> None:
    assert "xaat-secret" not in repr(Settings(axiom_token="xaat-secret"))


# --- Module Notes -----------------------------------------------------------
# Ingest traffic is served by httpx.MockTransport; no test touches the network.
