"""Reconciliation policy helpers.

Pure functions only: deciding *whether* and *how* an inbound message
affects mirrored state. The engine applies the result.
"""

from __future__ import annotations

import re
from typing import Any

from pydccio._constants import JMRI_POWER_OFF, JMRI_POWER_ON, VERSION_REPLY_HEX, VERSION_REPLY_MARKERS
from pydccio.models.connection import PowerStatus
from pydccio.models.events import PowerChangedPayload, TrafficPayload
from pydccio.models.throttle import ThrottleKey

SPEED_PROPERTY = "SpeedSetting"
DIRECTION_PROPERTY = "IsForward"
_MOMENTARY_SUFFIX = "Momentary"
_FUNCTION_PROPERTY = re.compile(r"^F(\d+)$")


def looks_like_version_report(traffic: TrafficPayload) -> bool:
    """Best-effort guess that inbound traffic is a command-station version reply.

    A match only schedules a registry refresh so newly reported
    command-station metadata shows up; a miss just means the next
    regular poll picks it up. Traffic with neither decoded text nor a
    message never matches, whatever its hex.
    """
    text = traffic.decoded or traffic.message
    if not text:
        return False
    if any(marker in text for marker in VERSION_REPLY_MARKERS):
        return True
    return VERSION_REPLY_HEX in traffic.hex.upper()


def function_number(property_name: str) -> int | None:
    """Map ``"F<n>"`` to ``n``. ``"F<n>Momentary"`` and anything else map to ``None``."""
    if not property_name or property_name.endswith(_MOMENTARY_SUFFIX):
        return None
    match = _FUNCTION_PROPERTY.match(property_name)
    if match is None:
        return None
    return int(match.group(1))


def throttle_id_connection(throttle_id: str | None) -> str | None:
    """Connection id prefix of a daemon throttle id (``"<conn>:<address>:<long>"``)."""
    if not throttle_id:
        return None
    connection_id, sep, _rest = throttle_id.rpartition(":")
    if not sep:
        return None
    connection_id, sep, _address = connection_id.rpartition(":")
    return connection_id if sep and connection_id else None


def event_targets_focus(
    *,
    focus: ThrottleKey | None,
    focus_connection_id: str | None,
    connection_id: str,
    address: int,
    long_address: bool | None,
) -> bool:
    """Whether a ``THROTTLE_UPDATED`` event belongs to the focused throttle.

    Matches on connection id and address; ``long_address`` is compared
    only when the event carries it.
    """
    if focus is None or not focus_connection_id:
        return False
    if connection_id != focus_connection_id or address != focus.address:
        return False
    return long_address is None or long_address == focus.long_address


def patch_targets_focus(focus: ThrottleKey | None, data: dict[str, Any]) -> bool:
    """Whether a command channel throttle payload belongs to the focused throttle."""
    if focus is None:
        return False
    try:
        address = int(data.get("address"))  # type: ignore[arg-type]
    except (TypeError, ValueError, OverflowError):
        return False
    return address == focus.address and bool(data.get("longAddress", False)) == focus.long_address


def resolve_power_status(payload: PowerChangedPayload) -> PowerStatus:
    if payload.status:
        return PowerStatus(payload.status)
    try:
        jmri_state = int(payload.new)
    except (TypeError, ValueError, OverflowError):
        return PowerStatus.UNKNOWN
    if jmri_state == JMRI_POWER_ON:
        return PowerStatus.ON
    if jmri_state == JMRI_POWER_OFF:
        return PowerStatus.OFF
    return PowerStatus.UNKNOWN


def format_traffic_line(connection_id: str, traffic: TrafficPayload) -> str:
    """Console line for a transport message, preferring decoded text."""
    text = f"[{connection_id}] {traffic.direction.upper()}: "
    if traffic.decoded and traffic.decoded != traffic.message:
        text += traffic.decoded
        if traffic.hex:
            text += f" ({traffic.hex})"
        return text
    text += traffic.message or traffic.hex
    if traffic.hex and traffic.message and traffic.hex != traffic.message:
        text += f" ({traffic.hex})"
    return text
