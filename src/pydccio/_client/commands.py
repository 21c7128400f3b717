"""Internal command operations for :class:`pydccio.client.DccIoClient`.

These functions keep `client.py` small without changing the public API.
Local state changes only after the daemon confirms a command; a
rejected command leaves state untouched, publishes an error status and
re-raises.
"""

from __future__ import annotations

from collections.abc import Awaitable
from typing import TYPE_CHECKING, TypeVar

from pydccio._api import accessories as _accessories_api
from pydccio._api import connections as _connections_api
from pydccio._api import throttles as _throttles_api
from pydccio.exceptions import DccIoApiError, DccIoTransportError
from pydccio.models.accessory import AccessoryStatus, turnout_state
from pydccio.models.connection import ConnectionRequest, ControllerRole
from pydccio.models.throttle import ThrottleKey, ThrottlePatch, ThrottleState, clamp_speed
from pydccio.state.events import StatusLevel

if TYPE_CHECKING:
    from pydccio.client import DccIoClient

T = TypeVar("T")


async def _issue(client: DccIoClient, call: Awaitable[T]) -> T:
    try:
        return await call
    except (DccIoApiError, DccIoTransportError) as exc:
        client.engine.report_status(f"Error: {exc}", StatusLevel.ERROR)
        raise


def _require_throttle(client: DccIoClient) -> str:
    throttle_id = client.store.throttle_id
    if not throttle_id:
        client._reject("No throttle is open")
    return throttle_id


# ----------------------------------------------------------------------
# Connections
# ----------------------------------------------------------------------


async def create_connection(client: DccIoClient, request: ConnectionRequest) -> None:
    if not request.id.strip() or not request.system_type.strip():
        client._reject("Connection id and system type are required")
    system = next((s for s in client.snapshot().systems if s.id == request.system_type), None)
    network = system is not None and system.is_network
    await _issue(client, _connections_api.create_connection(client._require_transport(), request, network=network))
    client.engine.report_status("Connection created successfully!", StatusLevel.SUCCESS)
    client.engine.request_refresh(0.0)


async def set_controller_role(client: DccIoClient, connection_id: str, role: ControllerRole, *, enabled: bool) -> None:
    if role == ControllerRole.UNKNOWN:
        client._reject(f"Unknown controller role: {role}")
    try:
        await _issue(
            client,
            _connections_api.set_role(client._require_transport(), connection_id, role, enabled=enabled),
        )
    finally:
        # Re-read roles even on failure so the local copy snaps back.
        client.engine.request_refresh(0.0)
    client.engine.report_status("Controller role updated", StatusLevel.SUCCESS)


async def request_version(client: DccIoClient, connection_id: str) -> None:
    await _issue(client, _connections_api.request_version(client._require_transport(), connection_id))
    client.engine.report_status("Version request sent. Waiting for response...", StatusLevel.SUCCESS)
    client.engine.request_refresh(client._config.request_version_refresh_delay)


# ----------------------------------------------------------------------
# Throttle
# ----------------------------------------------------------------------


async def open_throttle(client: DccIoClient, address: int | None, *, long_address: bool = False) -> ThrottleState:
    try:
        key = ThrottleKey(address=address, long_address=long_address)  # type: ignore[arg-type]
    except ValueError:
        client._reject("Please enter an address")
    throttle_id = await _issue(client, _throttles_api.open_throttle(client._require_transport(), key))
    state = client.engine.focus_throttle(key, throttle_id=throttle_id)
    client.engine.report_status("Throttle opened successfully", StatusLevel.SUCCESS)
    return state


async def close_throttle(client: DccIoClient) -> None:
    throttle_id = client.store.throttle_id
    if not throttle_id:
        return
    await _issue(client, _throttles_api.close_throttle(client._require_transport(), throttle_id))
    client.engine.release_throttle()
    client.engine.report_status("Throttle closed", StatusLevel.SUCCESS)


async def set_speed(client: DccIoClient, value: float) -> ThrottleState:
    throttle_id = _require_throttle(client)
    speed = clamp_speed(value)
    await _issue(client, _throttles_api.set_speed(client._require_transport(), throttle_id, speed))
    return client.engine.apply_local_throttle(ThrottlePatch(speed=speed), throttle_id=throttle_id)


async def set_direction(client: DccIoClient, forward: bool) -> ThrottleState:
    throttle_id = _require_throttle(client)
    await _issue(client, _throttles_api.set_direction(client._require_transport(), throttle_id, forward))
    return client.engine.apply_local_throttle(ThrottlePatch(forward=forward), throttle_id=throttle_id)


async def toggle_direction(client: DccIoClient) -> ThrottleState:
    _require_throttle(client)
    return await set_direction(client, not client.store.throttle.forward)


async def set_function(client: DccIoClient, number: int, on: bool) -> ThrottleState:
    throttle_id = _require_throttle(client)
    if isinstance(number, bool) or not isinstance(number, int) or number < 0:
        client._reject(f"Invalid function number: {number!r}")
    await _issue(client, _throttles_api.set_function(client._require_transport(), throttle_id, number, on))
    return client.engine.apply_local_throttle(ThrottlePatch(functions={number: on}), throttle_id=throttle_id)


async def toggle_function(client: DccIoClient, number: int) -> ThrottleState:
    _require_throttle(client)
    return await set_function(client, number, not client.store.throttle.function(number))


# ----------------------------------------------------------------------
# Accessories
# ----------------------------------------------------------------------


async def set_accessory(client: DccIoClient, address: int | None, *, closed: bool) -> AccessoryStatus:
    if isinstance(address, bool) or not isinstance(address, int) or address <= 0:
        client._reject("Please enter an address")
    await _issue(client, _accessories_api.set_turnout(client._require_transport(), address, closed=closed))
    status = AccessoryStatus(name=str(address), state=turnout_state(closed))
    client.engine.record_accessory(status)
    client.engine.report_status(status.describe(), StatusLevel.SUCCESS)
    return status
