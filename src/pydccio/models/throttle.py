"""Throttle state models.

A :class:`ThrottleState` is only ever held for the focused
:class:`ThrottleKey`; see :mod:`pydccio.state.store`.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


@dataclass(frozen=True, slots=True)
class ThrottleKey:
    """Locomotive address scope: ``(address, long_address)``."""

    address: int
    long_address: bool = False

    def __post_init__(self) -> None:
        if isinstance(self.address, bool) or not isinstance(self.address, int) or self.address <= 0:
            raise ValueError(f"throttle address must be a positive integer, got {self.address!r}")

    def __str__(self) -> str:
        return f"{self.address}{'L' if self.long_address else ''}"


def clamp_speed(value: Any) -> float:
    """Coerce *value* to a float in ``[0.0, 1.0]``. NaN and garbage become ``0.0``."""
    try:
        speed = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(speed):
        return 0.0
    return min(1.0, max(0.0, speed))


def _function_key(key: Any) -> int:
    if isinstance(key, bool):
        raise ValueError(f"invalid function number {key!r}")
    number = int(key)
    if number < 0:
        raise ValueError(f"function numbers must be non-negative, got {number}")
    return number


def _function_map(value: Any) -> dict[int, bool]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError("functions must be a mapping of function number to bool")
    return {_function_key(key): bool(flag) for key, flag in value.items()}


class ThrottlePatch(BaseModel):
    """Field-level delta for a throttle. ``None`` / missing keys mean "no change"."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    speed: float | None = None
    forward: bool | None = None
    functions: dict[int, bool] = Field(default_factory=dict)

    @field_validator("speed", mode="before")
    @classmethod
    def _clamp(cls, value: Any) -> Any:
        return None if value is None else clamp_speed(value)

    @field_validator("functions", mode="before")
    @classmethod
    def _functions(cls, value: Any) -> dict[int, bool]:
        return _function_map(value)

    @property
    def is_empty(self) -> bool:
        return self.speed is None and self.forward is None and not self.functions


class ThrottleState(BaseModel):
    """Speed, direction and function flags of one locomotive.

    The default instance is the reset state used on every focus switch.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    speed: float = 0.0
    forward: bool = True
    functions: dict[int, bool] = Field(default_factory=dict)

    @field_validator("speed", mode="before")
    @classmethod
    def _clamp(cls, value: Any) -> float:
        return clamp_speed(value)

    @field_validator("functions", mode="before")
    @classmethod
    def _functions(cls, value: Any) -> dict[int, bool]:
        return _function_map(value)

    def apply(self, patch: ThrottlePatch) -> ThrottleState:
        """Return a new state with only the fields present in *patch* replaced."""
        if patch.is_empty:
            return self
        update: dict[str, Any] = {}
        if patch.speed is not None:
            update["speed"] = patch.speed
        if patch.forward is not None:
            update["forward"] = patch.forward
        if patch.functions:
            update["functions"] = {**self.functions, **patch.functions}
        return ThrottleState.model_validate({**self.model_dump(), **update})

    def function(self, number: int) -> bool:
        return self.functions.get(number, False)
