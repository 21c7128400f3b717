"""Data models for DCC IO daemon payloads and mirrored state."""

from pydccio.models._base import DccBaseModel, DccEnum
from pydccio.models.accessory import AccessoryStatus, turnout_state
from pydccio.models.channel import ChannelMessage, ChannelState, MessageType
from pydccio.models.connection import (
    CommandStationInfo,
    ConnectionRecord,
    ConnectionRequest,
    ControllerRole,
    PowerStatus,
    SystemInfo,
)
from pydccio.models.events import (
    CommunicationErrorPayload,
    ConnectionStatePayload,
    DccEvent,
    DccEventType,
    PowerChangedPayload,
    ThrottleUpdatedPayload,
    TrafficPayload,
)
from pydccio.models.throttle import ThrottleKey, ThrottlePatch, ThrottleState, clamp_speed

__all__ = [
    "AccessoryStatus",
    "ChannelMessage",
    "ChannelState",
    "CommandStationInfo",
    "CommunicationErrorPayload",
    "ConnectionRecord",
    "ConnectionRequest",
    "ConnectionStatePayload",
    "ControllerRole",
    "DccBaseModel",
    "DccEnum",
    "DccEvent",
    "DccEventType",
    "MessageType",
    "PowerChangedPayload",
    "PowerStatus",
    "SystemInfo",
    "ThrottleKey",
    "ThrottlePatch",
    "ThrottleState",
    "ThrottleUpdatedPayload",
    "TrafficPayload",
    "clamp_speed",
    "turnout_state",
]
