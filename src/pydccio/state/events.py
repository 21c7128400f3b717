"""Shared vocabulary for the state layer.

Every inbound update is tagged with the :class:`Channel` it arrived on.
Only the reconciliation engine turns these into store mutations.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class Channel(StrEnum):
    POLL = "poll"
    EVENT_STREAM = "event_stream"
    COMMAND_CHANNEL = "command_channel"
    LOCAL = "local"
    """Confirmed results of commands issued by this client."""


class StatusLevel(StrEnum):
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"


class StatusMessage(BaseModel):
    """The single user-visible status line."""

    model_config = ConfigDict(frozen=True)

    text: str
    level: StatusLevel = StatusLevel.INFO
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
