from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import aiohttp
import pytest

from pydccio._client.event_stream import EventStreamClient
from pydccio.config import DccIoConfig
from pydccio.models.channel import ChannelState
from pydccio.models.connection import ConnectionRecord, PowerStatus
from pydccio.state.engine import ReconciliationEngine
from pydccio.state.events import Channel
from pydccio.state.log_buffer import BoundedLogBuffer, LogCategory
from pydccio.state.store import MirroredStateStore


@dataclass
class _Timer:
    delay: float
    callback: Callable[[], None]
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


@dataclass
class _FakeScheduler:
    timers: list[_Timer] = field(default_factory=list)

    def __call__(self, delay: float, callback: Callable[[], None]) -> _Timer:
        timer = _Timer(delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> list[_Timer]:
        return [timer for timer in self.timers if not timer.cancelled]

    def fire(self, timer: _Timer) -> None:
        self.timers.remove(timer)
        timer.callback()


class _FakeContent:
    """Line iterator fed by the test; ``None`` ends the stream and an exception is raised when reached."""

    def __init__(self) -> None:
        self._lines: asyncio.Queue[bytes | Exception | None] = asyncio.Queue()

    def feed(self, *lines: str) -> None:
        for line in lines:
            self._lines.put_nowait(f"{line}\n".encode())

    def end(self) -> None:
        self._lines.put_nowait(None)

    def fail(self, exc: Exception) -> None:
        self._lines.put_nowait(exc)

    def __aiter__(self) -> _FakeContent:
        return self

    async def __anext__(self) -> bytes:
        line = await self._lines.get()
        if line is None:
            raise StopAsyncIteration
        if isinstance(line, Exception):
            raise line
        return line


class _FakeResponse:
    def __init__(self, status: int = 200) -> None:
        self.status = status
        self.content = _FakeContent()

    async def __aenter__(self) -> _FakeResponse:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        return None


class _FakeSession:
    def __init__(self) -> None:
        self.responses: list[_FakeResponse | Exception] = []
        self.requests: list[dict[str, Any]] = []

    def get(self, url: str, **kwargs: Any) -> _FakeResponse:
        self.requests.append({"url": url, **kwargs})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _stream(session: _FakeSession) -> tuple[EventStreamClient, ReconciliationEngine, _FakeScheduler]:
    engine = ReconciliationEngine(
        MirroredStateStore(),
        transport_log=BoundedLogBuffer(500),
        channel_log=BoundedLogBuffer(300),
    )
    scheduler = _FakeScheduler()
    client = EventStreamClient(
        config=DccIoConfig(base_url="http://daemon.local:9000/"),
        http_session=session,  # type: ignore[arg-type]
        engine=engine,
        scheduler=scheduler,
    )
    return client, engine, scheduler


async def _settle() -> None:
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_open_stream_applies_events() -> None:
    session = _FakeSession()
    response = _FakeResponse()
    session.responses.append(response)
    client, engine, scheduler = _stream(session)
    engine.apply_connections([ConnectionRecord(id="A", connected=True)])

    client.start()
    assert client.state == ChannelState.CONNECTING
    await _settle()
    assert client.state == ChannelState.OPEN
    assert session.requests[0]["url"] == "http://daemon.local:9000/api/events"
    assert session.requests[0]["headers"]["accept"] == "text/event-stream"

    response.content.feed(
        "data: {\"type\":\"connected\"}",
        "",
        ": keep-alive",
        "data: {\"type\":\"POWER_CHANGED\",\"connectionId\":\"A\",",
        "data: \"payload\":{\"status\":\"OFF\"}}",
        "",
    )
    await _settle()

    assert engine.snapshot().connection("A").power_status == PowerStatus.OFF
    texts = [entry.text for entry in engine.transport_log]
    assert texts == ["Event stream connected", "[A] Power: OFF"]
    assert scheduler.pending == []
    await client.stop()


@pytest.mark.asyncio
async def test_close_schedules_exactly_one_retry() -> None:
    session = _FakeSession()
    first, second = _FakeResponse(), _FakeResponse()
    session.responses.extend([first, second])
    client, engine, scheduler = _stream(session)

    client.start()
    await _settle()
    first.content.end()
    await _settle()

    assert client.state == ChannelState.DISCONNECTED
    assert client.pending_reconnect
    assert [timer.delay for timer in scheduler.pending] == [3.0]
    assert engine.snapshot().last_errors[Channel.EVENT_STREAM] == "Event stream closed by server"

    scheduler.fire(scheduler.pending[0])
    await _settle()

    assert client.state == ChannelState.OPEN
    assert not client.pending_reconnect
    assert Channel.EVENT_STREAM not in engine.snapshot().last_errors
    assert len(session.requests) == 2
    await client.stop()


@pytest.mark.asyncio
async def test_connect_error_and_bad_status_retry() -> None:
    session = _FakeSession()
    session.responses.extend([aiohttp.ClientConnectionError("refused"), _FakeResponse(status=503)])
    client, engine, scheduler = _stream(session)

    client.start()
    await _settle()
    assert client.state == ChannelState.DISCONNECTED
    assert "refused" in engine.snapshot().last_errors[Channel.EVENT_STREAM]
    assert len(scheduler.pending) == 1

    scheduler.fire(scheduler.pending[0])
    await _settle()
    assert client.state == ChannelState.DISCONNECTED
    assert "HTTP 503" in engine.snapshot().last_errors[Channel.EVENT_STREAM]
    assert len(scheduler.pending) == 1
    await client.stop()
    assert scheduler.pending == []


@pytest.mark.asyncio
async def test_restart_replaces_live_stream() -> None:
    session = _FakeSession()
    first, second = _FakeResponse(), _FakeResponse()
    session.responses.extend([first, second])
    client, _, scheduler = _stream(session)

    client.start()
    await _settle()
    client.start()
    await _settle()

    assert client.state == ChannelState.OPEN
    assert len(session.requests) == 2
    assert scheduler.pending == []
    await client.stop()
    assert client.state == ChannelState.DISCONNECTED
    assert scheduler.pending == []


@pytest.mark.asyncio
async def test_malformed_frames_are_logged_and_dropped() -> None:
    client, engine, _ = _stream(_FakeSession())

    client.handle_data("{not json")
    client.handle_data('{"type":"POWER_CHANGED","payload":[]}')

    entries = engine.transport_log.entries()
    assert [entry.category for entry in entries] == [LogCategory.ERROR, LogCategory.ERROR]
    assert entries[0].text == "Malformed event: {not json"


@pytest.mark.asyncio
async def test_unexpected_read_error_still_schedules_retry() -> None:
    session = _FakeSession()
    response = _FakeResponse()
    session.responses.append(response)
    client, engine, scheduler = _stream(session)

    client.start()
    await _settle()
    response.content.fail(ValueError("Chunk too big"))
    await _settle()

    assert client.state == ChannelState.DISCONNECTED
    assert [timer.delay for timer in scheduler.pending] == [3.0]
    assert "Chunk too big" in engine.snapshot().last_errors[Channel.EVENT_STREAM]
    await client.stop()
