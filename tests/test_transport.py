from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import aiohttp
import pytest

from pydccio._api import accessories as accessories_api
from pydccio._api import connections as connections_api
from pydccio._api import throttles as throttles_api
from pydccio._transport import HttpTransport
from pydccio.config import DccIoConfig
from pydccio.exceptions import DccIoApiError, DccIoTransportError
from pydccio.models.connection import ControllerRole
from pydccio.models.throttle import ThrottleKey


class _FakeResponse:
    def __init__(self, status: int, text: str) -> None:
        self.status = status
        self._text = text

    async def text(self) -> str:
        return self._text

    async def __aenter__(self) -> _FakeResponse:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        return None


class _FakeSession:
    def __init__(self, *responses: tuple[int, str] | Exception) -> None:
        self._responses = list(responses)
        self.requests: list[dict[str, Any]] = []

    def request(self, method: str, url: str, **kwargs: Any) -> _FakeResponse:
        self.requests.append({"method": method, "url": url, **kwargs})
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return _FakeResponse(*response)


def _transport(*responses: tuple[int, str] | Exception) -> tuple[HttpTransport, _FakeSession]:
    session = _FakeSession(*responses)
    return HttpTransport(DccIoConfig(base_url="http://daemon:9000"), session), session  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_get_json_decodes_body() -> None:
    transport, session = _transport((200, '{"connections": []}'))

    assert await transport.get_json("/connections") == {"connections": []}
    assert session.requests[0]["method"] == "GET"
    assert session.requests[0]["url"] == "http://daemon:9000/connections"


@pytest.mark.asyncio
async def test_query_values_are_rendered() -> None:
    transport, session = _transport((200, '{"status": "ok"}'))

    await transport.post_json("/api/accessories", {"address": 12, "closed": False, "skip": None})

    assert session.requests[0]["params"] == {"address": "12", "closed": "false"}


@pytest.mark.asyncio
async def test_error_body_raises_api_error() -> None:
    transport, _ = _transport((409, '{"error": "Role already assigned"}'))

    with pytest.raises(DccIoApiError, match="Role already assigned") as excinfo:
        await transport.post_json("/connections/setRole")
    assert excinfo.value.status_code == 409


@pytest.mark.parametrize(
    "response",
    [(500, "Internal Server Error"), (200, "<html>"), aiohttp.ClientConnectionError("refused"), TimeoutError()],
)
@pytest.mark.asyncio
async def test_transport_failures(response: tuple[int, str] | Exception) -> None:
    transport, _ = _transport(response)

    with pytest.raises(DccIoTransportError):
        await transport.get_json("/api/ports")


@pytest.mark.asyncio
async def test_empty_body_is_none() -> None:
    transport, _ = _transport((204, ""))
    assert await transport.delete_json("/api/throttles/A%3A3%3Afalse") is None


# ------------------------------------------------------------------
# Endpoint modules
# ------------------------------------------------------------------


class _RecordingTransport:
    def __init__(self, response: Any = None) -> None:
        self.response = {"status": "ok"} if response is None else response
        self.calls: list[tuple[str, str, dict[str, Any]]] = []

    async def get_json(self, endpoint: str, params: Mapping[str, Any] | None = None) -> Any:
        self.calls.append(("GET", endpoint, dict(params or {})))
        return self.response

    async def post_json(self, endpoint: str, params: Mapping[str, Any] | None = None, body: Any = None) -> Any:
        self.calls.append(("POST", endpoint, dict(params or {})))
        return self.response

    async def delete_json(self, endpoint: str, params: Mapping[str, Any] | None = None) -> Any:
        self.calls.append(("DELETE", endpoint, dict(params or {})))
        return self.response


@pytest.mark.asyncio
async def test_open_throttle_returns_id() -> None:
    transport = _RecordingTransport({"id": "A:1234:true", "status": "ok"})

    throttle_id = await throttles_api.open_throttle(transport, ThrottleKey(1234, long_address=True))

    assert throttle_id == "A:1234:true"
    assert transport.calls == [("POST", "/api/throttles", {"address": 1234, "longAddress": True})]


@pytest.mark.asyncio
async def test_open_throttle_without_id_fails() -> None:
    with pytest.raises(DccIoApiError):
        await throttles_api.open_throttle(_RecordingTransport({"status": "ok"}), ThrottleKey(3))


@pytest.mark.asyncio
async def test_throttle_commands_quote_the_id() -> None:
    transport = _RecordingTransport()

    await throttles_api.set_speed(transport, "A:3:false", 0.5)
    await throttles_api.set_direction(transport, "A:3:false", False)
    await throttles_api.set_function(transport, "A:3:false", 2, True)
    await throttles_api.close_throttle(transport, "A:3:false")

    assert transport.calls == [
        ("POST", "/api/throttles/A%3A3%3Afalse/speed", {"value": 0.5}),
        ("POST", "/api/throttles/A%3A3%3Afalse/direction", {"forward": False}),
        ("POST", "/api/throttles/A%3A3%3Afalse/function", {"number": 2, "on": True}),
        ("DELETE", "/api/throttles/A%3A3%3Afalse", {}),
    ]


@pytest.mark.asyncio
async def test_connection_endpoints() -> None:
    transport = _RecordingTransport()

    await connections_api.set_role(transport, "A", ControllerRole.ACCESSORIES, enabled=True)
    await connections_api.request_version(transport, "A")
    await accessories_api.set_turnout(transport, 7, closed=True)

    assert transport.calls == [
        ("POST", "/connections/setRole", {"connectionId": "A", "role": "accessories", "enabled": True}),
        ("POST", "/connections/requestVersion", {"id": "A"}),
        ("POST", "/api/accessories", {"address": 7, "closed": True}),
    ]


@pytest.mark.asyncio
async def test_error_key_in_success_body_is_rejected() -> None:
    with pytest.raises(DccIoApiError, match="No accessories controller"):
        await accessories_api.set_turnout(_RecordingTransport({"error": "No accessories controller"}), 7, closed=False)
