"""Event stream models (``GET /api/events``).

Each server-sent frame carries ``{type, connectionId, payload}``. The
payload shape depends on ``type``; typed views are provided for the
types the reconciliation engine acts on.
"""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, Field, field_validator

from pydccio.models._base import DccBaseModel, DccEnum


class DccEventType(DccEnum):
    """Event tags emitted by the daemon's event bus."""

    MESSAGE_RECEIVED = "MESSAGE_RECEIVED"
    MESSAGE_SENT = "MESSAGE_SENT"
    THROTTLE_UPDATED = "THROTTLE_UPDATED"
    POWER_CHANGED = "POWER_CHANGED"
    COMMUNICATION_ERROR = "COMMUNICATION_ERROR"
    CONNECTION_STATE_CHANGED = "CONNECTION_STATE_CHANGED"
    EMERGENCY_STOP = "EMERGENCY_STOP"
    TURNOUT_UPDATED = "TURNOUT_UPDATED"
    STREAM_CONNECTED = "connected"
    """Greeting frame the daemon writes when the stream opens."""
    UNKNOWN = "UNKNOWN"


class DccEvent(DccBaseModel):
    """One decoded event stream frame."""

    type: DccEventType
    connection_id: str = ""
    payload: dict[str, Any] = Field(default_factory=dict)


class TrafficPayload(DccBaseModel):
    """Payload of ``MESSAGE_RECEIVED`` / ``MESSAGE_SENT``."""

    direction: str = ""
    message: str = ""
    hex: str = ""
    decoded: str = ""

    @field_validator("direction", "message", "hex", "decoded", mode="before")
    @classmethod
    def _as_text(cls, value: Any) -> str:
        return str(value)


class ThrottleUpdatedPayload(DccBaseModel):
    """Payload of ``THROTTLE_UPDATED`` (one property change)."""

    address: int
    long_address: bool | None = None
    property_name: str = Field(default="", validation_alias=AliasChoices("property", "propertyName", "property_name"))
    new_value: Any = None
    old_value: Any = None
    description: str = ""

    def describe(self) -> str:
        return self.description or f"{self.property_name} = {self.new_value}"


class PowerChangedPayload(DccBaseModel):
    """Payload of ``POWER_CHANGED``.

    Most systems send ``status``; some only forward the JMRI numeric
    power state as ``new`` (and ``old``).
    """

    status: str | None = None
    new: Any = None
    old: Any = None


class ConnectionStatePayload(DccBaseModel):
    connected: bool = False


class CommunicationErrorPayload(DccBaseModel):
    message: str = "Communication error"
