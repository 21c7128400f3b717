"""Command channel ingestion.

Parses inbound WebSocket text into :class:`ChannelMessage` and extracts
the deltas the reconciliation engine merges.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import ValidationError

from pydccio.exceptions import DccIoMessageError
from pydccio.ingestion.normalize import safe_bool, safe_float, safe_int
from pydccio.models.accessory import AccessoryStatus
from pydccio.models.channel import ChannelMessage
from pydccio.models.throttle import ThrottlePatch

_logger = logging.getLogger(__name__)


def parse_channel_message(text: str) -> ChannelMessage:
    try:
        decoded = json.loads(text)
    except json.JSONDecodeError as exc:
        raise DccIoMessageError(f"Channel message is not JSON: {text[:64]}", raw=text) from exc
    if not isinstance(decoded, dict):
        raise DccIoMessageError("Channel message is not a JSON object", raw=text)
    try:
        return ChannelMessage.model_validate(decoded)
    except ValidationError as exc:
        raise DccIoMessageError(f"Malformed channel message: {exc.error_count()} validation error(s)", raw=text) from exc


def throttle_patch_from(data: dict[str, Any]) -> ThrottlePatch:
    """Build a field-level patch from a throttle payload.

    Only keys present (and parseable) in *data* end up in the patch, so
    merging it never touches the other fields.
    """
    patch: dict[str, Any] = {}
    if "speed" in data:
        speed = safe_float(data["speed"])
        if speed is not None:
            patch["speed"] = speed
    if "forward" in data:
        forward = safe_bool(data["forward"])
        if forward is not None:
            patch["forward"] = forward
    functions = data.get("functions")
    if isinstance(functions, dict):
        flags: dict[int, bool] = {}
        for key, value in functions.items():
            number = safe_int(key)
            flag = safe_bool(value)
            if number is None or number < 0 or flag is None:
                _logger.debug("Ignoring function entry %r=%r", key, value)
                continue
            flags[number] = flag
        if flags:
            patch["functions"] = flags
    return ThrottlePatch.model_validate(patch)


def accessory_entries(data: Any) -> list[AccessoryStatus]:
    """Extract ``{name, state}`` entries from an accessories payload.

    Accepts a list (patch broadcasts and list replies), a single object
    (get replies) or ``{"accessories": [...]}``. Invalid entries are skipped.
    """
    if isinstance(data, dict) and isinstance(data.get("accessories"), list):
        data = data["accessories"]
    items = data if isinstance(data, list) else [data]
    entries: list[AccessoryStatus] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        try:
            entries.append(AccessoryStatus.model_validate(item))
        except ValidationError:
            _logger.debug("Skipping malformed accessory entry %r", item)
    return entries
