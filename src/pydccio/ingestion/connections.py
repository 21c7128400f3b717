"""Connection registry ingestion + parsing."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, ValidationError

from pydccio._constants import CONNECTIONS_ENDPOINT, PORTS_ENDPOINT, SYSTEMS_ENDPOINT
from pydccio._transport import Transport
from pydccio.exceptions import DccIoMessageError
from pydccio.models.connection import ConnectionRecord, SystemInfo

_logger = logging.getLogger(__name__)


def _items(decoded: Any, key: str, endpoint: str) -> list[Any]:
    if not isinstance(decoded, dict) or not isinstance(decoded.get(key), list):
        raise DccIoMessageError(f"{endpoint} response has no '{key}' list", raw=str(decoded)[:200])
    return decoded[key]


def _parse_each(items: list[Any], model: type[BaseModel]) -> list[Any]:
    parsed: list[Any] = []
    for item in items:
        try:
            parsed.append(model.model_validate(item))
        except ValidationError as exc:
            _logger.debug("Skipping invalid %s entry %r: %s", model.__name__, item, exc)
    return parsed


def parse_connections(decoded: Any) -> list[ConnectionRecord]:
    """Parse ``{"connections": [...]}``, skipping records that fail validation."""
    return _parse_each(_items(decoded, "connections", CONNECTIONS_ENDPOINT), ConnectionRecord)


def parse_systems(decoded: Any) -> list[SystemInfo]:
    return _parse_each(_items(decoded, "systems", SYSTEMS_ENDPOINT), SystemInfo)


def parse_ports(decoded: Any) -> list[str]:
    return [str(port) for port in _items(decoded, "ports", PORTS_ENDPOINT) if port not in (None, "")]


async def fetch_connections(transport: Transport) -> list[ConnectionRecord]:
    """Fetch and parse the connection registry."""
    return parse_connections(await transport.get_json(CONNECTIONS_ENDPOINT))


async def fetch_systems(transport: Transport) -> list[SystemInfo]:
    return parse_systems(await transport.get_json(SYSTEMS_ENDPOINT))


async def fetch_ports(transport: Transport) -> list[str]:
    return parse_ports(await transport.get_json(PORTS_ENDPOINT))
