"""Base model and enum for DCC IO daemon payloads.

Every wire model inherits from :class:`DccBaseModel` which provides:

* ``alias_generator=to_camel`` so camelCase daemon keys map
  automatically to snake_case fields.
* A ``model_validator(mode="before")`` that drops ``None`` values so
  the field default is used.
* Per-field sentinel rules (``_SENTINEL_RULES``) for values the daemon
  uses as "not reported" markers.

String enums inherit from :class:`DccEnum` which resolves any value
without a mapped member to ``UNKNOWN``.
"""

from __future__ import annotations

import enum
from collections.abc import Callable
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, model_validator
from pydantic.alias_generators import to_camel

from pydccio._constants import UNSET_MARKER


def is_unset_marker(value: Any) -> bool:
    """Return ``True`` for the daemon's ``"-1"`` / empty "not reported" markers."""
    return isinstance(value, str) and value.strip() in {"", UNSET_MARKER}


class DccEnum(enum.StrEnum):
    """Base for daemon string enums.

    Every subclass **must** define ``UNKNOWN``. Matching is
    case-insensitive; anything else resolves to ``UNKNOWN``.
    """

    @classmethod
    def _missing_(cls, value: object) -> DccEnum:
        if isinstance(value, str):
            folded = value.strip().lower()
            for member in cls:
                if member.value.lower() == folded:
                    return member
        unknown: DccEnum = cls["UNKNOWN"]
        return unknown


class DccBaseModel(BaseModel):
    """Base for daemon wire models."""

    _SENTINEL_RULES: ClassVar[dict[str, Callable[..., bool]]] = {}
    """Per-field sentinel predicates, applied after construction."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        return {key: value for key, value in values.items() if value is not None}

    @model_validator(mode="after")
    def _normalise_sentinels(self) -> DccBaseModel:
        """Replace per-field sentinel values with ``None``."""
        sentinel_rules: dict[str, Callable[..., bool]] = getattr(type(self), "_SENTINEL_RULES", {})
        for field_name, predicate in sentinel_rules.items():
            val = getattr(self, field_name, None)
            if val is not None and predicate(val):
                object.__setattr__(self, field_name, None)
        return self
