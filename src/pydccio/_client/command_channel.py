"""Command channel client (WebSocket on port + 1, path ``/json``).

Requests are fire-and-forget: :meth:`CommandChannelClient.send` returns
the generated request id as soon as the frame is written. Replies and
``method="patch"`` broadcasts go straight to the reconciliation engine,
which matches them by payload shape rather than by id.

Every close schedules one automatic reconnect after ``reconnect_delay``
seconds. :meth:`CommandChannelClient.reconnect` cancels that timer and
reconnects immediately.
"""

from __future__ import annotations

import asyncio
import contextlib
import itertools
import json
import logging
from collections.abc import Callable
from typing import Any

import aiohttp

from pydccio._client._timers import Scheduler, TimerHandle
from pydccio.config import DccIoConfig
from pydccio.exceptions import DccIoChannelNotOpenError, DccIoMessageError
from pydccio.ingestion.channel import parse_channel_message
from pydccio.models.channel import ChannelMessage, ChannelState
from pydccio.state.engine import ReconciliationEngine
from pydccio.state.events import Channel
from pydccio.state.log_buffer import LogCategory

_logger = logging.getLogger(__name__)


def _request_ids(prefix: str = "req") -> Callable[[], str]:
    counter = itertools.count(1)
    return lambda: f"{prefix}-{next(counter)}"


class CommandChannelClient:
    def __init__(
        self,
        *,
        config: DccIoConfig,
        http_session: aiohttp.ClientSession,
        engine: ReconciliationEngine,
        scheduler: Scheduler,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self._config = config
        self._http = http_session
        self._engine = engine
        self._scheduler = scheduler
        self._next_id = id_factory or _request_ids()
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._task: asyncio.Task[None] | None = None
        self._retry: TimerHandle | None = None
        self._stopped = True

    @property
    def url(self) -> str:
        return self._config.command_channel_url

    @property
    def state(self) -> ChannelState:
        return self._engine.store.channel_state(Channel.COMMAND_CHANNEL)

    @property
    def is_open(self) -> bool:
        return self._ws is not None and not self._ws.closed and self.state == ChannelState.OPEN

    @property
    def pending_reconnect(self) -> bool:
        return self._retry is not None

    def connect(self) -> None:
        """Open the channel in the background. A live connection is left alone."""
        self._stopped = False
        if self._task is not None and not self._task.done():
            return
        self._engine.set_channel_state(Channel.COMMAND_CHANNEL, ChannelState.CONNECTING)
        self._engine.record_channel_traffic(LogCategory.INFO, f"Connecting to {self.url}")
        self._task = asyncio.get_running_loop().create_task(self._run(), name="dccio-command-channel")

    async def reconnect(self) -> None:
        """Manual reconnect: drop any pending retry and the current socket, then connect now."""
        self._cancel_retry()
        await self._detach()
        self._engine.record_channel_traffic(LogCategory.INFO, "Manual reconnect")
        self.connect()

    async def close(self) -> None:
        self._stopped = True
        self._cancel_retry()
        await self._detach()
        self._engine.set_channel_state(Channel.COMMAND_CHANNEL, ChannelState.DISCONNECTED)

    async def send(self, message_type: str, data: Any = None, *, method: str | None = None) -> str:
        """Write one request frame and return its id without waiting for a reply."""
        ws = self._ws
        if ws is None or ws.closed or self.state != ChannelState.OPEN:
            raise DccIoChannelNotOpenError("WebSocket not connected")
        request_id = self._next_id()
        message = ChannelMessage(id=request_id, type=message_type, method=method, data={} if data is None else data)
        text = json.dumps(message.to_wire())
        await ws.send_str(text)
        self._engine.record_channel_traffic(LogCategory.SENT, text)
        return request_id

    def handle_text(self, text: str) -> None:
        """Log and dispatch one inbound frame. Never raises."""
        try:
            message = parse_channel_message(text)
        except DccIoMessageError as exc:
            self._engine.record_malformed(Channel.COMMAND_CHANNEL, text, str(exc))
            return
        self._engine.record_channel_traffic(LogCategory.RECEIVED, text)
        try:
            self._engine.apply_channel_message(message)
        except Exception:
            _logger.warning("Failed to apply %s message", message.type, exc_info=True)

    async def _run(self) -> None:
        try:
            ws = await self._http.ws_connect(self.url)
        except (aiohttp.ClientError, TimeoutError) as exc:
            self._task = None
            self._on_closed(f"Connect failed: {exc}")
            return
        except Exception as exc:
            _logger.warning("Command channel connect failed", exc_info=True)
            self._task = None
            self._on_closed(f"Connect failed: {exc}")
            return

        self._ws = ws
        self._engine.set_channel_state(Channel.COMMAND_CHANNEL, ChannelState.OPEN)
        self._engine.record_channel_traffic(LogCategory.INFO, "Connected")
        reason = "Closed"
        try:
            async for msg in ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    self.handle_text(msg.data)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    reason = f"Error: {ws.exception()}"
                    break
        except aiohttp.ClientError as exc:
            reason = f"Error: {exc}"
        except Exception as exc:
            _logger.warning("Command channel read failed", exc_info=True)
            reason = f"Error: {exc}"

        if self._ws is not ws:
            # Detached by reconnect() or close(); they own what happens next.
            return
        self._ws = None
        self._task = None
        with contextlib.suppress(Exception):
            await ws.close()
        self._on_closed(reason)

    def _on_closed(self, reason: str) -> None:
        self._engine.set_channel_state(Channel.COMMAND_CHANNEL, ChannelState.DISCONNECTED)
        self._engine.record_channel_traffic(LogCategory.INFO, reason)
        self._engine.record_failure(Channel.COMMAND_CHANNEL, reason)
        if self._stopped or self._retry is not None:
            return
        _logger.info("Command channel closed; reconnecting in %.1fs", self._config.reconnect_delay)
        self._retry = self._scheduler(self._config.reconnect_delay, self._auto_reconnect)

    def _auto_reconnect(self) -> None:
        self._retry = None
        if not self._stopped:
            self.connect()

    def _cancel_retry(self) -> None:
        if self._retry is not None:
            self._retry.cancel()
            self._retry = None

    async def _detach(self) -> None:
        ws = self._ws
        task = self._task
        self._ws = None
        self._task = None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if ws is not None:
            with contextlib.suppress(aiohttp.ClientError):
                await ws.close()
