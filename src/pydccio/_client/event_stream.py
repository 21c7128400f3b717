"""Event stream client (server-sent events on ``/api/events``).

State machine: disconnected -> connecting -> open -> disconnected. Any
transport failure drops back to disconnected and schedules one retry
after ``reconnect_delay`` seconds. The delay is fixed and attempts are
unlimited.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging

import aiohttp

from pydccio._client._timers import Scheduler, TimerHandle
from pydccio._constants import EVENTS_ENDPOINT, USER_AGENT
from pydccio._sse import SseDecoder
from pydccio.config import DccIoConfig
from pydccio.exceptions import DccIoMessageError, DccIoTransportError
from pydccio.ingestion.events import parse_event
from pydccio.models.channel import ChannelState
from pydccio.state.engine import ReconciliationEngine
from pydccio.state.events import Channel

_logger = logging.getLogger(__name__)


class EventStreamClient:
    def __init__(
        self,
        *,
        config: DccIoConfig,
        http_session: aiohttp.ClientSession,
        engine: ReconciliationEngine,
        scheduler: Scheduler,
    ) -> None:
        self._config = config
        self._http = http_session
        self._engine = engine
        self._scheduler = scheduler
        self._task: asyncio.Task[None] | None = None
        self._retry: TimerHandle | None = None
        self._stopped = True

    @property
    def url(self) -> str:
        return f"{self._config.http_base}{EVENTS_ENDPOINT}"

    @property
    def state(self) -> ChannelState:
        return self._engine.store.channel_state(Channel.EVENT_STREAM)

    @property
    def pending_reconnect(self) -> bool:
        return self._retry is not None

    def start(self) -> None:
        """Open the stream, closing any live one first."""
        self._stopped = False
        self._cancel_retry()
        self._detach()
        self._engine.set_channel_state(Channel.EVENT_STREAM, ChannelState.CONNECTING)
        self._task = asyncio.get_running_loop().create_task(self._run(), name="dccio-event-stream")

    async def stop(self) -> None:
        self._stopped = True
        self._cancel_retry()
        task = self._detach()
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._engine.set_channel_state(Channel.EVENT_STREAM, ChannelState.DISCONNECTED)

    def handle_data(self, data: str) -> None:
        """Parse one event frame and hand it to the engine. Never raises."""
        try:
            event = parse_event(data)
        except DccIoMessageError as exc:
            self._engine.record_malformed(Channel.EVENT_STREAM, data, str(exc))
            return
        try:
            self._engine.apply_event(event)
        except Exception:
            _logger.warning("Failed to apply event %s", event.type, exc_info=True)

    async def _run(self) -> None:
        decoder = SseDecoder()
        timeout = aiohttp.ClientTimeout(total=None, sock_connect=self._config.request_timeout)
        headers = {"accept": "text/event-stream", "cache-control": "no-cache", "user-agent": USER_AGENT}
        try:
            async with self._http.get(self.url, headers=headers, timeout=timeout) as resp:
                if resp.status != 200:
                    raise DccIoTransportError(
                        f"HTTP {resp.status} from {EVENTS_ENDPOINT}",
                        status_code=resp.status,
                        endpoint=EVENTS_ENDPOINT,
                    )
                self._engine.set_channel_state(Channel.EVENT_STREAM, ChannelState.OPEN)
                _logger.debug("Event stream open at %s", self.url)
                async for line in resp.content:
                    data = decoder.feed_line(line)
                    if data is not None:
                        self.handle_data(data)
            reason = "Event stream closed by server"
        except (aiohttp.ClientError, DccIoTransportError, TimeoutError) as exc:
            reason = f"Event stream error: {exc}"
        except Exception as exc:
            _logger.warning("Event stream read failed", exc_info=True)
            reason = f"Event stream error: {exc}"
        self._task = None
        self._on_closed(reason)

    def _on_closed(self, reason: str) -> None:
        self._engine.set_channel_state(Channel.EVENT_STREAM, ChannelState.DISCONNECTED)
        self._engine.record_failure(Channel.EVENT_STREAM, reason)
        if self._stopped or self._retry is not None:
            return
        _logger.info("Event stream disconnected; reconnecting in %.1fs", self._config.reconnect_delay)
        self._retry = self._scheduler(self._config.reconnect_delay, self._reconnect)

    def _reconnect(self) -> None:
        self._retry = None
        if not self._stopped:
            self.start()

    def _cancel_retry(self) -> None:
        if self._retry is not None:
            self._retry.cancel()
            self._retry = None

    def _detach(self) -> asyncio.Task[None] | None:
        task = self._task
        self._task = None
        if task is not None and not task.done():
            task.cancel()
        return task
