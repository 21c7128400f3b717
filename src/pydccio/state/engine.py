"""Reconciliation engine.

The single writer of :class:`~pydccio.state.store.MirroredStateStore`.
The polling client, the event stream client and the command channel
client hand every inbound message to this engine, which applies the
merge rules:

* the connection registry is replaced wholesale by each poll; power
  events patch one field in between;
* throttle updates touch the focused throttle only, field by field;
  updates for any other address are logged and discarded;
* accessory broadcasts record every entry, the first one drives the
  single-item display.

There is no cross-channel ordering: whichever update is applied last
wins, per field.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import Any

from pydccio.exceptions import DccIoMessageError
from pydccio.ingestion.channel import accessory_entries, throttle_patch_from
from pydccio.ingestion.events import event_payload
from pydccio.ingestion.normalize import safe_bool, safe_float
from pydccio.models.accessory import AccessoryStatus
from pydccio.models.channel import ChannelMessage, ChannelState, MessageType
from pydccio.models.connection import ConnectionRecord, SystemInfo
from pydccio.models.events import (
    CommunicationErrorPayload,
    ConnectionStatePayload,
    DccEvent,
    DccEventType,
    PowerChangedPayload,
    ThrottleUpdatedPayload,
    TrafficPayload,
)
from pydccio.models.throttle import ThrottleKey, ThrottlePatch, ThrottleState
from pydccio.state.events import Channel, StatusLevel
from pydccio.state.log_buffer import BoundedLogBuffer, LogCategory
from pydccio.state.policy import (
    DIRECTION_PROPERTY,
    SPEED_PROPERTY,
    event_targets_focus,
    format_traffic_line,
    function_number,
    looks_like_version_report,
    patch_targets_focus,
    resolve_power_status,
    throttle_id_connection,
)
from pydccio.state.store import MirroredStateStore, StateSnapshot

_logger = logging.getLogger(__name__)

StateListener = Callable[[StateSnapshot], None]
RefreshScheduler = Callable[[float], None]


def patch_from_property(property_name: str, value: Any) -> ThrottlePatch | None:
    """Translate one ``THROTTLE_UPDATED`` property change into a patch."""
    if property_name == SPEED_PROPERTY:
        speed = safe_float(value)
        return None if speed is None else ThrottlePatch(speed=speed)
    if property_name == DIRECTION_PROPERTY:
        forward = safe_bool(value)
        return None if forward is None else ThrottlePatch(forward=forward)
    number = function_number(property_name)
    if number is not None:
        flag = safe_bool(value)
        return None if flag is None else ThrottlePatch(functions={number: flag})
    return None


class ReconciliationEngine:
    def __init__(
        self,
        store: MirroredStateStore,
        *,
        transport_log: BoundedLogBuffer,
        channel_log: BoundedLogBuffer,
        refresh_scheduler: RefreshScheduler | None = None,
        version_refresh_delay: float = 0.5,
    ) -> None:
        self._store = store
        self._transport_log = transport_log
        self._channel_log = channel_log
        self._refresh_scheduler = refresh_scheduler
        self._version_refresh_delay = version_refresh_delay
        self._listeners: list[StateListener] = []

    @property
    def store(self) -> MirroredStateStore:
        return self._store

    @property
    def transport_log(self) -> BoundedLogBuffer:
        return self._transport_log

    @property
    def channel_log(self) -> BoundedLogBuffer:
        return self._channel_log

    def set_refresh_scheduler(self, scheduler: RefreshScheduler | None) -> None:
        self._refresh_scheduler = scheduler

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Call *listener* with a fresh snapshot after every applied change."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def snapshot(self) -> StateSnapshot:
        return self._store.snapshot()

    def request_refresh(self, delay: float = 0.0) -> None:
        if self._refresh_scheduler is None:
            _logger.debug("Registry refresh requested (delay=%.2fs) but no scheduler is attached", delay)
            return
        self._refresh_scheduler(delay)

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    def apply_connections(self, records: Iterable[ConnectionRecord]) -> None:
        self._store.replace_connections(records)
        self._store.set_last_error(Channel.POLL, None)
        self._notify()

    def apply_systems(self, systems: Iterable[SystemInfo]) -> None:
        self._store.set_systems(systems)
        self._notify()

    def apply_ports(self, ports: Iterable[str]) -> None:
        self._store.set_ports(ports)
        self._notify()

    def record_failure(self, channel: Channel, message: str) -> None:
        """Record a transient failure; prior state is left untouched."""
        _logger.warning("%s failure: %s", channel, message)
        self._store.set_last_error(channel, message)
        self._notify()

    def set_channel_state(self, channel: Channel, state: ChannelState) -> None:
        if self._store.channel_state(channel) == state:
            return
        _logger.debug("%s -> %s", channel, state)
        self._store.set_channel_state(channel, state)
        if state == ChannelState.OPEN:
            self._store.set_last_error(channel, None)
        self._notify()

    # ------------------------------------------------------------------
    # Event stream
    # ------------------------------------------------------------------

    def apply_event(self, event: DccEvent) -> None:
        """Apply one event stream event. Malformed payloads are logged and dropped."""
        try:
            self._dispatch_event(event)
        except DccIoMessageError as exc:
            _logger.warning("Dropping event %s from %s: %s", event.type, event.connection_id, exc)
            return
        self._notify()

    def _dispatch_event(self, event: DccEvent) -> None:
        cid = event.connection_id
        if event.type in (DccEventType.MESSAGE_RECEIVED, DccEventType.MESSAGE_SENT):
            traffic = event_payload(event, TrafficPayload)
            category = LogCategory.IN if event.type == DccEventType.MESSAGE_RECEIVED else LogCategory.OUT
            self._log_transport(category, format_traffic_line(cid, traffic))
            if event.type == DccEventType.MESSAGE_RECEIVED and looks_like_version_report(traffic):
                self.request_refresh(self._version_refresh_delay)
        elif event.type == DccEventType.THROTTLE_UPDATED:
            self._on_throttle_updated(cid, event_payload(event, ThrottleUpdatedPayload))
        elif event.type == DccEventType.POWER_CHANGED:
            status = resolve_power_status(event_payload(event, PowerChangedPayload))
            self._store.set_power_status(cid, status)
            self._log_transport(LogCategory.POWER, f"[{cid}] Power: {status}")
        elif event.type == DccEventType.COMMUNICATION_ERROR:
            error = event_payload(event, CommunicationErrorPayload)
            self._log_transport(LogCategory.ERROR, f"[{cid}] Error: {error.message}")
        elif event.type == DccEventType.CONNECTION_STATE_CHANGED:
            # The registry's connected flag is owned by the poll.
            state = event_payload(event, ConnectionStatePayload)
            self._log_transport(
                LogCategory.POWER, f"[{cid}] Connection: {'Connected' if state.connected else 'Disconnected'}"
            )
        elif event.type == DccEventType.STREAM_CONNECTED:
            self._log_transport(LogCategory.INFO, "Event stream connected")
        else:
            self._log_transport(LogCategory.INFO, f"[{cid}] {event.type}")

    def _on_throttle_updated(self, connection_id: str, update: ThrottleUpdatedPayload) -> None:
        description = update.describe()
        self._log_transport(LogCategory.POWER, f"[{connection_id}] {description}")
        if not event_targets_focus(
            focus=self._store.focus,
            focus_connection_id=throttle_id_connection(self._store.throttle_id),
            connection_id=connection_id,
            address=update.address,
            long_address=update.long_address,
        ):
            return
        self._store.set_throttle_status(self._store.stamp(description))
        patch = patch_from_property(update.property_name, update.new_value)
        if patch is not None:
            self._store.patch_throttle(patch)

    # ------------------------------------------------------------------
    # Command channel
    # ------------------------------------------------------------------

    def record_channel_traffic(self, category: LogCategory, text: str) -> None:
        self._channel_log.add(category, text)
        _logger.debug("channel %s: %s", category, text)

    def record_malformed(self, channel: Channel, raw: str, reason: str) -> None:
        """Log an unparseable inbound message; nothing else happens to it."""
        _logger.warning("Dropping malformed %s message: %s", channel, reason)
        if channel == Channel.COMMAND_CHANNEL:
            self._channel_log.add(LogCategory.MALFORMED, raw)
        else:
            self._transport_log.add(LogCategory.ERROR, f"Malformed event: {raw[:200]}")

    def apply_channel_message(self, message: ChannelMessage) -> None:
        kind = message.message_type
        if kind == MessageType.STATUS:
            self.request_refresh(0.0)
        elif kind == MessageType.THROTTLE:
            self._on_channel_throttle(message)
        elif kind == MessageType.ACCESSORIES:
            self._on_channel_accessories(message)
        elif kind == MessageType.ERROR:
            data = message.data if isinstance(message.data, dict) else {}
            text = str(data.get("message") or "Unknown error")
            _logger.warning("Command channel error reply id=%s: %s", message.id, text)
            self._store.set_status(f"Error: {text}", StatusLevel.ERROR)
        else:
            _logger.debug("Command channel %s message not reconciled", message.type)
            return
        self._notify()

    def _on_channel_throttle(self, message: ChannelMessage) -> None:
        data = message.data
        if not isinstance(data, dict):
            _logger.debug("Throttle message without object data: %r", data)
            return
        if not patch_targets_focus(self._store.focus, data):
            _logger.debug(
                "Throttle %s for %s/%s is not focused; ignored",
                "patch" if message.is_patch else "reply",
                data.get("address"),
                data.get("longAddress"),
            )
            return
        self._store.patch_throttle(throttle_patch_from(data))

    def _on_channel_accessories(self, message: ChannelMessage) -> None:
        entries = accessory_entries(message.data)
        if not entries:
            return
        # Replies refresh the map; only broadcasts drive the status line.
        self._store.set_accessories(entries, display_first=message.is_patch)

    # ------------------------------------------------------------------
    # Locally confirmed results
    # ------------------------------------------------------------------

    def focus_throttle(self, key: ThrottleKey, *, throttle_id: str | None = None) -> ThrottleState:
        """Focus a new throttle; state resets before any later update applies."""
        self._store.focus_throttle(key, throttle_id=throttle_id)
        self._store.set_throttle_status(self._store.stamp(f"Throttle opened for train {key.address}"))
        self._notify()
        return self._store.throttle

    def release_throttle(self) -> None:
        self._store.release_throttle()
        self._store.set_throttle_status(self._store.stamp("Throttle closed"))
        self._notify()

    def apply_local_throttle(self, patch: ThrottlePatch, *, throttle_id: str | None = None) -> ThrottleState:
        """Merge a confirmed command result into the focused throttle.

        When *throttle_id* is given, the patch is dropped unless that
        throttle is still the focused one: a command that completes after
        a focus switch or close must not touch the new state.
        """
        if throttle_id is not None and self._store.throttle_id != throttle_id:
            _logger.debug("Dropping result for %s; focused throttle is %s", throttle_id, self._store.throttle_id)
            return self._store.throttle
        state = self._store.patch_throttle(patch)
        self._notify()
        return state

    def record_accessory(self, status: AccessoryStatus) -> None:
        self._store.set_accessories([status])
        self._notify()

    def report_status(self, text: str, level: StatusLevel = StatusLevel.INFO) -> None:
        self._store.set_status(text, level)
        self._notify()

    # ------------------------------------------------------------------

    def _log_transport(self, category: LogCategory, text: str) -> None:
        self._transport_log.add(category, text)
        _logger.debug("transport %s: %s", category, text)

    def _notify(self) -> None:
        if not self._listeners:
            return
        snapshot = self._store.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                _logger.debug("State listener failed", exc_info=True)
