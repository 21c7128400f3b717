"""Connection management endpoints.

Endpoints:
  - /connections/create
  - /connections/setRole
  - /connections/requestVersion
"""

from __future__ import annotations

import logging
from typing import Any

from pydccio._api._common import require_ok
from pydccio._constants import CREATE_CONNECTION_ENDPOINT, REQUEST_VERSION_ENDPOINT, SET_ROLE_ENDPOINT
from pydccio._transport import Transport
from pydccio.models.connection import ConnectionRequest, ControllerRole

_logger = logging.getLogger(__name__)


async def create_connection(transport: Transport, request: ConnectionRequest, *, network: bool) -> dict[str, Any]:
    query = request.to_query(network=network)
    _logger.debug("Creating connection %s (%s)", request.id, request.system_type)
    decoded = await transport.post_json(CREATE_CONNECTION_ENDPOINT, query)
    return require_ok(decoded, endpoint=CREATE_CONNECTION_ENDPOINT)


async def set_role(
    transport: Transport,
    connection_id: str,
    role: ControllerRole,
    *,
    enabled: bool,
) -> dict[str, Any]:
    decoded = await transport.post_json(
        SET_ROLE_ENDPOINT,
        {"connectionId": connection_id, "role": str(role), "enabled": enabled},
    )
    return require_ok(decoded, endpoint=SET_ROLE_ENDPOINT)


async def request_version(transport: Transport, connection_id: str) -> dict[str, Any]:
    """Ask the command station to report its version.

    The reply arrives asynchronously on the connection; the registry
    picks it up on a later refresh.
    """
    decoded = await transport.post_json(REQUEST_VERSION_ENDPOINT, {"id": connection_id})
    return require_ok(decoded, endpoint=REQUEST_VERSION_ENDPOINT)
