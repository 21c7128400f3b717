"""Polling client: periodic refresh of the connection registry.

Ticks are not serialized. Each tick spawns its own request, so a slow
response can land after a newer one; every response is a complete
snapshot, so the last one to resolve simply wins.
"""

from __future__ import annotations

import logging

from pydccio._client._timers import BackgroundTasks, Scheduler, TimerHandle
from pydccio._transport import Transport
from pydccio.config import DccIoConfig
from pydccio.exceptions import DccIoApiError, DccIoMessageError, DccIoTransportError
from pydccio.ingestion.connections import fetch_connections, fetch_ports, fetch_systems
from pydccio.state.engine import ReconciliationEngine
from pydccio.state.events import Channel

_logger = logging.getLogger(__name__)

_POLL_ERRORS = (DccIoTransportError, DccIoApiError, DccIoMessageError)


class PollingClient:
    def __init__(
        self,
        *,
        config: DccIoConfig,
        transport: Transport,
        engine: ReconciliationEngine,
        scheduler: Scheduler,
    ) -> None:
        self._config = config
        self._transport = transport
        self._engine = engine
        self._scheduler = scheduler
        self._tasks = BackgroundTasks(_logger)
        self._tick_handle: TimerHandle | None = None
        self._refresh_handles: set[TimerHandle] = set()
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def refresh_connections(self) -> bool:
        """Fetch ``/connections`` and replace the registry.

        On failure the prior registry is kept and the error is recorded;
        the next tick retries. Returns whether the refresh succeeded.
        """
        try:
            records = await fetch_connections(self._transport)
        except _POLL_ERRORS as exc:
            self._engine.record_failure(Channel.POLL, f"Error loading connections: {exc}")
            return False
        self._engine.apply_connections(records)
        return True

    async def load_systems(self) -> bool:
        try:
            systems = await fetch_systems(self._transport)
        except _POLL_ERRORS as exc:
            self._engine.record_failure(Channel.POLL, f"Error loading systems: {exc}")
            return False
        self._engine.apply_systems(systems)
        return True

    async def load_ports(self) -> bool:
        try:
            ports = await fetch_ports(self._transport)
        except _POLL_ERRORS as exc:
            self._engine.record_failure(Channel.POLL, f"Error loading ports: {exc}")
            return False
        self._engine.apply_ports(ports)
        return True

    def start(self, *, immediate: bool = True) -> None:
        """Tick every ``poll_interval`` seconds, starting now unless *immediate* is false."""
        if self._running:
            return
        self._running = True
        if immediate:
            self._tick()
        else:
            self._tick_handle = self._scheduler(self._config.poll_interval, self._tick)

    def schedule_refresh(self, delay: float) -> None:
        """Refresh the registry once, after *delay* seconds (now if ``<= 0``)."""
        if delay <= 0:
            self._tasks.spawn(self.refresh_connections(), name="dccio-refresh")
            return

        handle: TimerHandle | None = None

        def fire() -> None:
            self._refresh_handles.discard(handle)  # type: ignore[arg-type]
            self._tasks.spawn(self.refresh_connections(), name="dccio-refresh")

        handle = self._scheduler(delay, fire)
        self._refresh_handles.add(handle)

    def _tick(self) -> None:
        self._tick_handle = None
        if not self._running:
            return
        self._tasks.spawn(self.refresh_connections(), name="dccio-poll")
        if self._config.ports_poll_enabled:
            self._tasks.spawn(self.load_ports(), name="dccio-poll-ports")
        self._tick_handle = self._scheduler(self._config.poll_interval, self._tick)

    async def stop(self) -> None:
        self._running = False
        if self._tick_handle is not None:
            self._tick_handle.cancel()
            self._tick_handle = None
        for handle in list(self._refresh_handles):
            handle.cancel()
        self._refresh_handles.clear()
        await self._tasks.cancel_all()
