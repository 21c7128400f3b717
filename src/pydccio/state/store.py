"""In-memory mirror of daemon state.

The store owns the connection registry, the focused throttle and the
accessory map. Channel clients never touch it directly; only
:class:`pydccio.state.engine.ReconciliationEngine` calls the mutators.
Readers get immutable :class:`StateSnapshot` copies.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import UTC, datetime, timedelta

from pydantic import BaseModel, ConfigDict, Field

from pydccio.models.accessory import AccessoryStatus
from pydccio.models.channel import ChannelState
from pydccio.models.connection import ConnectionRecord, ControllerRole, PowerStatus, SystemInfo
from pydccio.models.throttle import ThrottleKey, ThrottlePatch, ThrottleState
from pydccio.state.events import Channel, StatusLevel, StatusMessage


def _utcnow() -> datetime:
    return datetime.now(UTC)


class StateSnapshot(BaseModel):
    """Consistent, immutable view of the mirrored state."""

    model_config = ConfigDict(frozen=True)

    connections: tuple[ConnectionRecord, ...] = ()
    systems: tuple[SystemInfo, ...] = ()
    ports: tuple[str, ...] = ()
    focus: ThrottleKey | None = None
    throttle_id: str | None = None
    throttle: ThrottleState = Field(default_factory=ThrottleState)
    accessories: dict[str, AccessoryStatus] = Field(default_factory=dict)
    accessory_display: AccessoryStatus | None = None
    status: StatusMessage | None = None
    throttle_status: str | None = None
    accessory_status: str | None = None
    channel_states: dict[Channel, ChannelState] = Field(default_factory=dict)
    last_errors: dict[Channel, str] = Field(default_factory=dict)

    def connection(self, connection_id: str) -> ConnectionRecord | None:
        for record in self.connections:
            if record.id == connection_id:
                return record
        return None

    def controller_for(self, role: ControllerRole) -> ConnectionRecord | None:
        """First connection holding *role* (the daemon allows at most one)."""
        for record in self.connections:
            if record.has_role(role):
                return record
        return None


class MirroredStateStore:
    def __init__(
        self,
        *,
        clock: Callable[[], datetime] = _utcnow,
        status_ttl: timedelta = timedelta(seconds=5),
    ) -> None:
        self._clock = clock
        self._status_ttl = status_ttl
        self._connections: dict[str, ConnectionRecord] = {}
        # Power reported by events; fills gaps in poll responses.
        self._power_cache: dict[str, PowerStatus] = {}
        self._systems: tuple[SystemInfo, ...] = ()
        self._ports: tuple[str, ...] = ()
        self._focus: ThrottleKey | None = None
        self._throttle_id: str | None = None
        self._throttle = ThrottleState()
        self._accessories: dict[str, AccessoryStatus] = {}
        self._accessory_display: AccessoryStatus | None = None
        self._status: StatusMessage | None = None
        self._throttle_status: str | None = None
        self._accessory_status: str | None = None
        self._channel_states: dict[Channel, ChannelState] = {
            Channel.EVENT_STREAM: ChannelState.DISCONNECTED,
            Channel.COMMAND_CHANNEL: ChannelState.DISCONNECTED,
        }
        self._last_errors: dict[Channel, str] = {}

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def focus(self) -> ThrottleKey | None:
        return self._focus

    @property
    def throttle_id(self) -> str | None:
        return self._throttle_id

    @property
    def throttle(self) -> ThrottleState:
        return self._throttle

    def connection(self, connection_id: str) -> ConnectionRecord | None:
        return self._connections.get(connection_id)

    def channel_state(self, channel: Channel) -> ChannelState:
        return self._channel_states.get(channel, ChannelState.DISCONNECTED)

    def snapshot(self) -> StateSnapshot:
        status = self._status
        if status is not None and self._clock() - status.created_at >= self._status_ttl:
            status = None
        return StateSnapshot(
            connections=tuple(self._connections.values()),
            systems=self._systems,
            ports=self._ports,
            focus=self._focus,
            throttle_id=self._throttle_id,
            throttle=self._throttle,
            accessories=dict(self._accessories),
            accessory_display=self._accessory_display,
            status=status,
            throttle_status=self._throttle_status,
            accessory_status=self._accessory_status,
            channel_states=dict(self._channel_states),
            last_errors=dict(self._last_errors),
        )

    # ------------------------------------------------------------------
    # Connection registry
    # ------------------------------------------------------------------

    def replace_connections(self, records: Iterable[ConnectionRecord]) -> None:
        """Replace the registry wholesale.

        A record without ``power_status`` inherits the locally known value;
        a present value always wins and refreshes the local cache.
        """
        replaced: dict[str, ConnectionRecord] = {}
        for record in records:
            if record.power_status is None:
                cached = self._power_cache.get(record.id)
                if cached is not None:
                    record = record.model_copy(update={"power_status": cached})
            else:
                self._power_cache[record.id] = record.power_status
            replaced[record.id] = record
        self._connections = replaced

    def set_power_status(self, connection_id: str, status: PowerStatus) -> bool:
        """Patch one connection's power. Returns ``False`` if it is not in the registry yet."""
        self._power_cache[connection_id] = status
        record = self._connections.get(connection_id)
        if record is None:
            return False
        self._connections[connection_id] = record.model_copy(update={"power_status": status})
        return True

    def set_systems(self, systems: Iterable[SystemInfo]) -> None:
        self._systems = tuple(systems)

    def set_ports(self, ports: Iterable[str]) -> None:
        self._ports = tuple(ports)

    # ------------------------------------------------------------------
    # Focused throttle
    # ------------------------------------------------------------------

    def focus_throttle(self, key: ThrottleKey, *, throttle_id: str | None = None) -> None:
        """Switch focus and reset throttle state to defaults."""
        self._focus = key
        self._throttle_id = throttle_id
        self._throttle = ThrottleState()

    def release_throttle(self) -> None:
        self._focus = None
        self._throttle_id = None
        self._throttle = ThrottleState()

    def patch_throttle(self, patch: ThrottlePatch) -> ThrottleState:
        if self._focus is None:
            raise LookupError("no throttle is focused")
        self._throttle = self._throttle.apply(patch)
        return self._throttle

    def set_throttle_status(self, text: str) -> None:
        self._throttle_status = text

    # ------------------------------------------------------------------
    # Accessories
    # ------------------------------------------------------------------

    def set_accessories(self, statuses: Iterable[AccessoryStatus], *, display_first: bool = True) -> None:
        """Record latest states; the first entry becomes the single-item display."""
        first: AccessoryStatus | None = None
        for status in statuses:
            self._accessories[status.name] = status
            if first is None:
                first = status
        if first is not None and display_first:
            self._accessory_display = first
            self._accessory_status = self.stamp(first.describe())

    # ------------------------------------------------------------------
    # Status and channel bookkeeping
    # ------------------------------------------------------------------

    def set_status(self, text: str, level: StatusLevel) -> StatusMessage:
        self._status = StatusMessage(text=text, level=level, created_at=self._clock())
        return self._status

    def set_channel_state(self, channel: Channel, state: ChannelState) -> None:
        self._channel_states[channel] = state

    def set_last_error(self, channel: Channel, message: str | None) -> None:
        if message is None:
            self._last_errors.pop(channel, None)
        else:
            self._last_errors[channel] = message

    def stamp(self, text: str) -> str:
        """Prefix *text* with the local wall-clock time, as the panel status lines do."""
        return f"[{self._clock().astimezone().strftime('%H:%M:%S')}] {text}"
