"""Normalization helpers.

Centralizes defensive parsing of loosely typed daemon values. The event
stream serializes anything that is not a number or boolean as a string,
so ``"true"`` and ``"0.5"`` both show up in practice.
"""

from __future__ import annotations

import math
from typing import Any


def safe_float(value: Any) -> float | None:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(result):
        return None
    return result


def safe_int(value: Any) -> int | None:
    parsed = safe_float(value)
    if parsed is None:
        return None
    return int(parsed)


def safe_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"true", "1", "yes", "on"}:
            return True
        if normalized in {"false", "0", "no", "off"}:
            return False
    return None


def safe_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value)
    return text if text else None


def query_value(value: Any) -> str:
    """Render a query parameter the way the daemon parses it (``true``/``false`` for bools)."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
