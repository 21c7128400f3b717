"""Event stream ingestion.

Turns server-sent ``data:`` frames into :class:`DccEvent` objects and
typed payload views. Parse failures raise :class:`DccIoMessageError`;
callers log and drop them.
"""

from __future__ import annotations

import json
from typing import TypeVar

from pydantic import BaseModel, ValidationError

from pydccio.exceptions import DccIoMessageError
from pydccio.models.events import DccEvent

TPayload = TypeVar("TPayload", bound=BaseModel)


def parse_event(text: str) -> DccEvent:
    try:
        decoded = json.loads(text)
    except json.JSONDecodeError as exc:
        raise DccIoMessageError(f"Event is not JSON: {text[:64]}", raw=text) from exc
    if not isinstance(decoded, dict):
        raise DccIoMessageError("Event is not a JSON object", raw=text)
    try:
        return DccEvent.model_validate(decoded)
    except ValidationError as exc:
        raise DccIoMessageError(f"Malformed event: {exc.error_count()} validation error(s)", raw=text) from exc


def event_payload(event: DccEvent, model: type[TPayload]) -> TPayload:
    """Validate the event payload against a typed view."""
    try:
        return model.model_validate(event.payload)
    except ValidationError as exc:
        raise DccIoMessageError(
            f"Malformed {event.type} payload: {exc.error_count()} validation error(s)",
            raw=json.dumps(event.payload, default=str),
        ) from exc
