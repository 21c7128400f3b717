"""Command channel message models (WebSocket ``/json``)."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from pydccio.models._base import DccEnum

PATCH = "patch"


class ChannelState(DccEnum):
    """Lifecycle of a persistent channel."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    OPEN = "open"
    UNKNOWN = "unknown"


class MessageType(DccEnum):
    """``type`` discriminator of command channel messages."""

    STATUS = "status"
    THROTTLE = "throttle"
    THROTTLES = "throttles"
    ACCESSORIES = "accessories"
    ERROR = "error"
    UNKNOWN = "unknown"


class ChannelMessage(BaseModel):
    """A request or a response/broadcast on the command channel.

    Requests always carry a client-generated ``id``. Inbound messages
    without ``method`` are direct replies; ``method="patch"`` marks an
    unsolicited broadcast.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str | None = None
    type: str
    method: str | None = None
    data: Any = Field(default_factory=dict)

    @property
    def message_type(self) -> MessageType:
        return MessageType(self.type)

    @property
    def is_patch(self) -> bool:
        return (self.method or "").lower() == PATCH

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)
