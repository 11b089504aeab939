"""
item_catalog.observability.sinks

Log sink adapter: fan-out of finished log records to their destinations.

Responsibilities:
- Deliver every record to each configured destination, isolating failures.
- Write newline-delimited JSON to the console.
- Batch records to the Axiom ingest API over HTTPS (when a token is configured).
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from collections import deque
from collections.abc import Mapping, Sequence
from typing import Any, Protocol, TextIO

import httpx
import structlog

from item_catalog.settings import Settings

# Sink-internal problems go to stdlib logging; routing them through structlog would recurse.
_fallback = logging.getLogger(__name__)

LEVEL_ORDER = {"debug": 10, "info": 20, "warn": 30, "error": 40}

LogRecord = Mapping[str, Any]


class LogDestination(Protocol):
    name: str

    def emit(self, record: dict[str, Any]) -> None: ...

    async def start(self) -> None: ...

    async def aclose(self) -> None: ...


def _level_allows(record: LogRecord, min_level: str) -> bool:
    level = LEVEL_ORDER.get(str(record.get("level", "info")), LEVEL_ORDER["info"])
    return level >= LEVEL_ORDER[min_level]


class ConsoleDestination:
    name = "console"

    def __init__(self, *, stream: TextIO | None = None, min_level: str = "debug") -> None:
        self._stream = stream
        self._min_level = min_level
        self._render = structlog.processors.JSONRenderer(default=str)

    def emit(self, record: dict[str, Any]) -> None:
        if not _level_allows(record, self._min_level):
            return
        # Resolve stdout lazily so test capture (capsys) sees the output.
        stream = self._stream or sys.stdout
        stream.write(self._render(None, "", record) + "\n")
        stream.flush()

    async def start(self) -> None:
        return None

    async def aclose(self) -> None:
        return None


class AxiomDestination:
    """
    Buffered shipper for the Axiom ingest API.

    `emit` only appends to an in-memory buffer; HTTP happens on a background task so
    request handlers never wait on the network.
    """

    name = "axiom"

    def __init__(
        self,
        *,
        token: str,
        dataset: str,
        base_url: str = "https://api.axiom.co",
        batch_size: int = 100,
        flush_interval: float = 1.0,
        max_buffer: int = 10_000,
        min_level: str = "info",
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self._token = token
        self._dataset = dataset
        self._base_url = base_url.rstrip("/")
        self._batch_size = batch_size
        self._flush_interval = flush_interval
        self._min_level = min_level
        # Oldest records are dropped once the buffer is full (ingest outage).
        self._buffer: deque[dict[str, Any]] = deque(maxlen=max_buffer)
        self._http = http
        self._owns_http = http is None
        self._task: asyncio.Task[None] | None = None
        self._pending: set[asyncio.Task[None]] = set()

    @property
    def ingest_path(self) -> str:
        return f"/v1/datasets/{self._dataset}/ingest"

    @property
    def buffered(self) -> int:
        return len(self._buffer)

    def emit(self, record: dict[str, Any]) -> None:
        if not _level_allows(record, self._min_level):
            return
        self._buffer.append(record)
        if len(self._buffer) >= self._batch_size:
            self._schedule_flush()

    def _schedule_flush(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop (e.g. CLI tooling): records wait for the next explicit flush.
            return
        task = loop.create_task(self.flush())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def start(self) -> None:
        if self._http is None:
            self._http = httpx.AsyncClient(base_url=self._base_url, timeout=10.0)
        if self._task is None:
            self._task = asyncio.create_task(self._run())

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._flush_interval)
            try:
                await self.flush()
            except Exception:
                # The loop outlives any single bad batch.
                _fallback.exception("axiom flush failed")

    @staticmethod
    def _encode(batch: list[dict[str, Any]]) -> tuple[str, int]:
        lines: list[str] = []
        for record in batch:
            try:
                lines.append(json.dumps(record, default=str))
            except (TypeError, ValueError):
                # One unserializable record must not cost the rest of the batch.
                _fallback.warning(
                    "dropping unserializable log record: %s", record.get("message", "<no message>")
                )
        return "[" + ",".join(lines) + "]", len(lines)

    async def flush(self) -> int:
        if not self._buffer:
            return 0
        batch = list(self._buffer)
        self._buffer.clear()
        content, count = self._encode(batch)
        if not count:
            return 0

        if self._http is None:
            self._http = httpx.AsyncClient(base_url=self._base_url, timeout=10.0)
        try:
            r = await self._http.post(
                self.ingest_path,
                content=content,
                headers={
                    "Authorization": f"Bearer {self._token}",
                    "Content-Type": "application/json",
                },
            )
            r.raise_for_status()
        except httpx.HTTPError as e:
            _fallback.warning("axiom ingest failed (%d records dropped): %s", count, e)
            return 0
        return count

    async def aclose(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        # Drain whatever is left before the process goes away.
        await self.flush()
        if self._owns_http and self._http is not None:
            await self._http.aclose()
            self._http = None


class LogSink:
    """
    Immutable fan-out over a fixed destination list.
    """

    def __init__(self, destinations: Sequence[LogDestination]) -> None:
        self._destinations = tuple(destinations)

    @property
    def destinations(self) -> tuple[LogDestination, ...]:
        return self._destinations

    def emit(self, record: LogRecord) -> None:
        for destination in self._destinations:
            try:
                # Each destination gets its own copy; none can mutate what another sees.
                destination.emit(dict(record))
            except Exception:
                _fallback.exception("log destination %s failed", destination.name)

    async def start(self) -> None:
        for destination in self._destinations:
            await destination.start()

    async def aclose(self) -> None:
        for destination in self._destinations:
            try:
                await destination.aclose()
            except Exception:
                _fallback.exception("log destination %s failed to close", destination.name)


def build_log_sink(settings: Settings) -> tuple[LogSink, list[str]]:
    """
    Resolve destinations from settings. Returns the sink plus startup warnings, which
    the caller logs once structlog is configured.
    """

    warnings: list[str] = []
    destinations: list[LogDestination] = [ConsoleDestination()]

    if settings.remote_logging_enabled and settings.axiom_token:
        if not settings.axiom_dataset:
            warnings.append(
                f"ITEMS_AXIOM_DATASET is not set; using dataset '{settings.dataset_name}'"
            )
        destinations.append(
            AxiomDestination(
                token=settings.axiom_token,
                dataset=settings.dataset_name,
                base_url=settings.axiom_url,
                batch_size=settings.axiom_batch_size,
                flush_interval=settings.axiom_flush_interval,
            )
        )
    else:
        warnings.append("Axiom not configured. Logs will only be sent to console.")

    return LogSink(destinations), warnings


# --- Module Notes -----------------------------------------------------------
# The destination list is fixed for the process lifetime; tests build a LogSink
# around a recording destination instead of patching these classes.
