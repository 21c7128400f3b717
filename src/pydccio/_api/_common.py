"""Shared helpers for DCC IO endpoint modules.

It is internal to pydccio and may change at any time.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

from pydccio.exceptions import DccIoApiError


def path_segment(value: str) -> str:
    """Quote a value for use as one URL path segment (throttle ids contain ``:``)."""
    return quote(value, safe="")


def require_ok(decoded: Any, *, endpoint: str) -> dict[str, Any]:
    """Return the decoded body, rejecting ``{"error": ...}`` that slipped past a 2xx status."""
    if decoded is None:
        return {}
    if not isinstance(decoded, dict):
        return {"result": decoded}
    if decoded.get("error"):
        raise DccIoApiError(str(decoded["error"]), endpoint=endpoint)
    return decoded
