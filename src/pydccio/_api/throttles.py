"""Throttle endpoints (``/api/throttles``)."""

from __future__ import annotations

from pydccio._api._common import path_segment, require_ok
from pydccio._constants import THROTTLES_ENDPOINT
from pydccio._transport import Transport
from pydccio.exceptions import DccIoApiError
from pydccio.models.throttle import ThrottleKey


def _throttle_endpoint(throttle_id: str, action: str = "") -> str:
    endpoint = f"{THROTTLES_ENDPOINT}/{path_segment(throttle_id)}"
    return f"{endpoint}/{action}" if action else endpoint


async def open_throttle(transport: Transport, key: ThrottleKey) -> str:
    """Open a throttle on the throttles controller; returns the daemon's throttle id."""
    decoded = require_ok(
        await transport.post_json(THROTTLES_ENDPOINT, {"address": key.address, "longAddress": key.long_address}),
        endpoint=THROTTLES_ENDPOINT,
    )
    throttle_id = decoded.get("id")
    if not isinstance(throttle_id, str) or not throttle_id:
        raise DccIoApiError("Throttle opened without an id", endpoint=THROTTLES_ENDPOINT)
    return throttle_id


async def close_throttle(transport: Transport, throttle_id: str) -> None:
    endpoint = _throttle_endpoint(throttle_id)
    require_ok(await transport.delete_json(endpoint), endpoint=endpoint)


async def set_speed(transport: Transport, throttle_id: str, value: float) -> None:
    endpoint = _throttle_endpoint(throttle_id, "speed")
    require_ok(await transport.post_json(endpoint, {"value": value}), endpoint=endpoint)


async def set_direction(transport: Transport, throttle_id: str, forward: bool) -> None:
    endpoint = _throttle_endpoint(throttle_id, "direction")
    require_ok(await transport.post_json(endpoint, {"forward": forward}), endpoint=endpoint)


async def set_function(transport: Transport, throttle_id: str, number: int, on: bool) -> None:
    endpoint = _throttle_endpoint(throttle_id, "function")
    require_ok(await transport.post_json(endpoint, {"number": number, "on": on}), endpoint=endpoint)
