"""High-level async client for the DCC IO daemon."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta
from typing import Any, NoReturn

import aiohttp

from pydccio._client import commands as _commands
from pydccio._client._timers import Scheduler, loop_scheduler
from pydccio._client.command_channel import CommandChannelClient
from pydccio._client.event_stream import EventStreamClient
from pydccio._client.polling import PollingClient
from pydccio._transport import HttpTransport
from pydccio.config import DccIoConfig
from pydccio.exceptions import DccIoChannelNotOpenError, DccIoError, DccIoValidationError
from pydccio.models.accessory import AccessoryStatus
from pydccio.models.channel import MessageType
from pydccio.models.connection import ConnectionRequest, ControllerRole, PowerStatus
from pydccio.models.throttle import ThrottleState
from pydccio.state.engine import ReconciliationEngine, StateListener
from pydccio.state.events import StatusLevel
from pydccio.state.log_buffer import BoundedLogBuffer
from pydccio.state.store import MirroredStateStore, StateSnapshot

_logger = logging.getLogger(__name__)


class DccIoClient:
    """Async client that mirrors DCC IO daemon state.

    Usage::

        async with DccIoClient(DccIoConfig.from_env()) as client:
            await client.start()
            await client.open_throttle(3)
            await client.set_speed(0.4)
            print(client.snapshot().throttle)

    Three channels feed the mirror: the connection poll, the server-sent
    event stream and the WebSocket command channel. Each fails and
    recovers on its own; :meth:`snapshot` always returns one consistent
    view.
    """

    def __init__(
        self,
        config: DccIoConfig | None = None,
        *,
        session: aiohttp.ClientSession | None = None,
        scheduler: Scheduler | None = None,
        clock: Callable[[], datetime] | None = None,
        on_state_change: StateListener | None = None,
    ) -> None:
        self._config = config or DccIoConfig()
        self._external_session = session is not None
        self._http_session = session
        self._scheduler = scheduler
        self._transport: HttpTransport | None = None
        self._polling: PollingClient | None = None
        self._event_stream: EventStreamClient | None = None
        self._command_channel: CommandChannelClient | None = None

        store_kwargs: dict[str, Any] = {"status_ttl": timedelta(seconds=self._config.status_message_ttl)}
        if clock is not None:
            store_kwargs["clock"] = clock
        self._store = MirroredStateStore(**store_kwargs)
        log_kwargs: dict[str, Any] = {} if clock is None else {"clock": clock}
        self._engine = ReconciliationEngine(
            self._store,
            transport_log=BoundedLogBuffer(self._config.transport_log_capacity, **log_kwargs),
            channel_log=BoundedLogBuffer(self._config.channel_log_capacity, **log_kwargs),
            version_refresh_delay=self._config.version_refresh_delay,
        )
        if on_state_change is not None:
            self._engine.subscribe(on_state_change)

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> DccIoClient:
        loop = asyncio.get_running_loop()
        if self._http_session is None:
            self._http_session = aiohttp.ClientSession()
        scheduler = self._scheduler or loop_scheduler(loop)
        self._transport = HttpTransport(self._config, self._http_session)
        self._polling = PollingClient(
            config=self._config,
            transport=self._transport,
            engine=self._engine,
            scheduler=scheduler,
        )
        self._event_stream = EventStreamClient(
            config=self._config,
            http_session=self._http_session,
            engine=self._engine,
            scheduler=scheduler,
        )
        self._command_channel = CommandChannelClient(
            config=self._config,
            http_session=self._http_session,
            engine=self._engine,
            scheduler=scheduler,
        )
        self._engine.set_refresh_scheduler(self._polling.schedule_refresh)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()
        self._engine.set_refresh_scheduler(None)
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        self._transport = None
        self._polling = None
        self._event_stream = None
        self._command_channel = None

    async def start(self) -> None:
        """Load systems and ports, refresh once, then start all three channels."""
        polling = self._require_polling()
        await polling.load_systems()
        await polling.load_ports()
        await polling.refresh_connections()
        polling.start(immediate=False)
        if self._config.event_stream_enabled:
            self._require_event_stream().start()
        if self._config.command_channel_enabled:
            self._require_command_channel().connect()

    async def stop(self) -> None:
        """Cancel timers and in-flight polls, close both persistent channels."""
        if self._polling is not None:
            await self._polling.stop()
        if self._event_stream is not None:
            await self._event_stream.stop()
        if self._command_channel is not None:
            await self._command_channel.close()

    # ------------------------------------------------------------------
    # State access
    # ------------------------------------------------------------------

    @property
    def config(self) -> DccIoConfig:
        return self._config

    @property
    def store(self) -> MirroredStateStore:
        return self._store

    @property
    def engine(self) -> ReconciliationEngine:
        return self._engine

    @property
    def transport_log(self) -> BoundedLogBuffer:
        return self._engine.transport_log

    @property
    def channel_log(self) -> BoundedLogBuffer:
        return self._engine.channel_log

    def snapshot(self) -> StateSnapshot:
        return self._engine.snapshot()

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register *listener* for state changes; returns an unsubscribe callable."""
        return self._engine.subscribe(listener)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_transport(self) -> HttpTransport:
        if self._transport is None:
            raise DccIoError("Client not initialized. Use 'async with DccIoClient(...) as client:'")
        return self._transport

    def _require_polling(self) -> PollingClient:
        if self._polling is None:
            raise DccIoError("Client not initialized. Use 'async with DccIoClient(...) as client:'")
        return self._polling

    def _require_event_stream(self) -> EventStreamClient:
        if self._event_stream is None:
            raise DccIoError("Client not initialized. Use 'async with DccIoClient(...) as client:'")
        return self._event_stream

    def _require_command_channel(self) -> CommandChannelClient:
        if self._command_channel is None:
            raise DccIoError("Client not initialized. Use 'async with DccIoClient(...) as client:'")
        return self._command_channel

    def _reject(self, message: str, exc_type: type[DccIoValidationError] = DccIoValidationError) -> NoReturn:
        """Surface a validation failure as a status message and raise it."""
        self._engine.report_status(message, StatusLevel.ERROR)
        raise exc_type(message)

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    async def refresh_connections(self) -> bool:
        return await self._require_polling().refresh_connections()

    async def load_systems(self) -> bool:
        return await self._require_polling().load_systems()

    async def load_ports(self) -> bool:
        return await self._require_polling().load_ports()

    # ------------------------------------------------------------------
    # Connection management
    # ------------------------------------------------------------------

    async def create_connection(self, request: ConnectionRequest) -> None:
        await _commands.create_connection(self, request)

    async def set_controller_role(self, connection_id: str, role: ControllerRole | str, enabled: bool) -> None:
        await _commands.set_controller_role(self, connection_id, ControllerRole(role), enabled=enabled)

    async def request_version(self, connection_id: str) -> None:
        await _commands.request_version(self, connection_id)

    # ------------------------------------------------------------------
    # Throttle
    # ------------------------------------------------------------------

    async def open_throttle(self, address: int | None, long_address: bool = False) -> ThrottleState:
        """Open a throttle and make it the focused one (state resets to defaults)."""
        return await _commands.open_throttle(self, address, long_address=long_address)

    async def close_throttle(self) -> None:
        await _commands.close_throttle(self)

    async def set_speed(self, value: float) -> ThrottleState:
        """Set speed as a fraction of full speed; values are clamped to ``[0, 1]``."""
        return await _commands.set_speed(self, value)

    async def set_direction(self, forward: bool) -> ThrottleState:
        return await _commands.set_direction(self, forward)

    async def toggle_direction(self) -> ThrottleState:
        return await _commands.toggle_direction(self)

    async def set_function(self, number: int, on: bool) -> ThrottleState:
        return await _commands.set_function(self, number, on)

    async def toggle_function(self, number: int) -> ThrottleState:
        return await _commands.toggle_function(self, number)

    # ------------------------------------------------------------------
    # Accessories
    # ------------------------------------------------------------------

    async def set_accessory(self, address: int | None, closed: bool) -> AccessoryStatus:
        return await _commands.set_accessory(self, address, closed=closed)

    # ------------------------------------------------------------------
    # Command channel
    # ------------------------------------------------------------------

    async def reconnect_command_channel(self) -> None:
        """Manual reconnect; cancels any pending automatic retry."""
        await self._require_command_channel().reconnect()

    async def _send(self, message_type: MessageType, data: Any = None, *, method: str | None = None) -> str:
        channel = self._require_command_channel()
        if not channel.is_open:
            self._reject("WebSocket not connected", DccIoChannelNotOpenError)
        return await channel.send(str(message_type), data, method=method)

    async def query_status(self) -> str:
        """Ask for a status reply; it triggers a registry refresh when it arrives."""
        return await self._send(MessageType.STATUS)

    async def query_throttle(self, address: int | None, long_address: bool = False) -> str:
        if isinstance(address, bool) or not isinstance(address, int) or address <= 0:
            self._reject("Please enter an address")
        return await self._send(MessageType.THROTTLE, {"address": address, "longAddress": long_address})

    async def list_accessories(self) -> str:
        return await self._send(MessageType.ACCESSORIES, method="list")

    async def set_accessories(self, entries: Iterable[AccessoryStatus | tuple[str, str]]) -> str:
        accessories: list[dict[str, str]] = []
        for entry in entries:
            status = entry if isinstance(entry, AccessoryStatus) else AccessoryStatus(name=entry[0], state=entry[1])
            accessories.append({"name": status.name, "state": status.state})
        if not accessories:
            self._reject("No accessories to set")
        return await self._send(MessageType.ACCESSORIES, {"accessories": accessories}, method="post")

    async def set_power(self, connection_id: str, on: bool) -> str:
        if not connection_id:
            self._reject("Connection id is required")
        power = PowerStatus.ON if on else PowerStatus.OFF
        return await self._send(MessageType.STATUS, {"connectionId": connection_id, "power": str(power)}, method="post")
