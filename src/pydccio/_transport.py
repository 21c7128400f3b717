"""HTTP transport for the DCC IO daemon REST surface."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiohttp

from pydccio._constants import USER_AGENT
from pydccio.config import DccIoConfig
from pydccio.exceptions import DccIoApiError, DccIoTransportError
from pydccio.ingestion.normalize import query_value

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by endpoint modules.

    Having a protocol here makes it easy to pass test doubles while
    keeping the production implementation (`HttpTransport`) concrete.
    """

    async def get_json(self, endpoint: str, params: Mapping[str, Any] | None = None) -> Any:
        ...

    async def post_json(self, endpoint: str, params: Mapping[str, Any] | None = None, body: Any = None) -> Any:
        ...

    async def delete_json(self, endpoint: str, params: Mapping[str, Any] | None = None) -> Any:
        ...


def _error_message(text: str) -> str | None:
    """Extract ``error`` from a daemon error body, if it has one."""
    try:
        decoded = json.loads(text)
    except json.JSONDecodeError:
        return None
    if isinstance(decoded, dict) and decoded.get("error"):
        return str(decoded["error"])
    return None


class HttpTransport:
    """JSON-over-HTTP transport.

    Every daemon endpoint takes its arguments as query parameters and
    answers with JSON. Rejections come back as a non-2xx status with an
    ``{"error": "..."}`` body and surface as :class:`DccIoApiError`;
    anything else that goes wrong is a :class:`DccIoTransportError`.
    """

    def __init__(self, config: DccIoConfig, http_session: aiohttp.ClientSession) -> None:
        self._config = config
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=config.request_timeout)

    async def get_json(self, endpoint: str, params: Mapping[str, Any] | None = None) -> Any:
        return await self._request("GET", endpoint, params)

    async def post_json(self, endpoint: str, params: Mapping[str, Any] | None = None, body: Any = None) -> Any:
        return await self._request("POST", endpoint, params, body)

    async def delete_json(self, endpoint: str, params: Mapping[str, Any] | None = None) -> Any:
        return await self._request("DELETE", endpoint, params)

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Mapping[str, Any] | None,
        body: Any = None,
    ) -> Any:
        url = f"{self._config.http_base}{endpoint}"
        query = {key: query_value(value) for key, value in (params or {}).items() if value is not None}
        headers = {"accept": "application/json", "user-agent": USER_AGENT}
        data: str | None = None
        if body is not None:
            headers["content-type"] = "application/json; charset=UTF-8"
            data = json.dumps(body)

        _logger.debug("%s %s %s", method, url, query)

        try:
            async with self._http.request(
                method,
                url,
                params=query,
                data=data,
                headers=headers,
                timeout=self._timeout,
            ) as resp:
                text = await resp.text()
                status = resp.status
        except aiohttp.ClientError as exc:
            raise DccIoTransportError(f"Request to {endpoint} failed: {exc}", endpoint=endpoint) from exc
        except TimeoutError as exc:
            raise DccIoTransportError(f"Request to {endpoint} timed out", endpoint=endpoint) from exc

        if not 200 <= status < 300:
            message = _error_message(text)
            if message is not None:
                raise DccIoApiError(message, status_code=status, endpoint=endpoint)
            raise DccIoTransportError(
                f"HTTP {status} from {endpoint}: {text[:200]}",
                status_code=status,
                endpoint=endpoint,
            )

        if not text.strip():
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise DccIoTransportError(f"Invalid JSON from {endpoint}: {text[:200]}", endpoint=endpoint) from exc
