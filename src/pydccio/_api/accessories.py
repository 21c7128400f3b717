"""Accessory endpoint (``/api/accessories``)."""

from __future__ import annotations

from pydccio._api._common import require_ok
from pydccio._constants import ACCESSORIES_ENDPOINT
from pydccio._transport import Transport


async def set_turnout(transport: Transport, address: int, *, closed: bool) -> None:
    """Set a turnout on the accessories controller."""
    decoded = await transport.post_json(ACCESSORIES_ENDPOINT, {"address": address, "closed": closed})
    require_ok(decoded, endpoint=ACCESSORIES_ENDPOINT)
