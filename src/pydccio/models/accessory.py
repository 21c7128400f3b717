"""Accessory (turnout / signal) status model."""

from __future__ import annotations

from typing import Any

from pydantic import field_validator

from pydccio.models._base import DccBaseModel

CLOSED = "closed"
THROWN = "thrown"


def turnout_state(closed: bool) -> str:
    return CLOSED if closed else THROWN


class AccessoryStatus(DccBaseModel):
    """Latest state label for one accessory, keyed by name or address.

    ``state`` is a short label such as ``"closed"``/``"thrown"`` for
    turnouts or a colour name for signals. No history is kept.
    """

    name: str
    state: str

    @field_validator("name", "state", mode="before")
    @classmethod
    def _as_text(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("name")
    @classmethod
    def _require_name(cls, value: str) -> str:
        if not value:
            raise ValueError("accessory name must be non-empty")
        return value

    def describe(self) -> str:
        return f"Accessory {self.name} set to {self.state.upper()}"
