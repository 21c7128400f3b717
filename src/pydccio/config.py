"""Client configuration for pydccio."""

from __future__ import annotations

import dataclasses
import os
from typing import Any
from urllib.parse import urlsplit

from pydccio.exceptions import DccIoConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class DccIoConfig:
    """Client configuration.

    Parameters
    ----------
    base_url : str
        HTTP base URL of the DCC IO daemon (e.g. ``"http://localhost:9000"``).
    poll_interval : float
        Seconds between connection registry refreshes.
    ports_poll_enabled : bool
        Re-read the serial port list on every poll tick.
    reconnect_delay : float
        Fixed delay in seconds before the event stream or command channel
        retries after a failure. There is no backoff and no attempt cap.
    version_refresh_delay : float
        Delay before the registry refresh triggered by traffic that looks
        like a command-station version report.
    request_version_refresh_delay : float
        Delay before the registry refresh that follows an explicit
        version request.
    status_message_ttl : float
        Seconds a status message stays visible in snapshots.
    command_channel_port_offset : int
        The command channel listens on the HTTP port plus this offset.
    command_channel_path : str
        WebSocket path of the command channel.
    transport_log_capacity : int
        Lines kept in the decoded transport log.
    channel_log_capacity : int
        Lines kept in the raw command-channel log.
    request_timeout : float
        Total timeout in seconds for one HTTP request.
    event_stream_enabled : bool
        Open the server-sent event stream on start.
    command_channel_enabled : bool
        Open the WebSocket command channel on start.
    """

    base_url: str = "http://localhost:9000"
    poll_interval: float = 5.0
    ports_poll_enabled: bool = True
    reconnect_delay: float = 3.0
    version_refresh_delay: float = 0.5
    request_version_refresh_delay: float = 1.0
    status_message_ttl: float = 5.0
    command_channel_port_offset: int = 1
    command_channel_path: str = "/json"
    transport_log_capacity: int = 500
    channel_log_capacity: int = 300
    request_timeout: float = 10.0
    event_stream_enabled: bool = True
    command_channel_enabled: bool = True

    def __post_init__(self) -> None:
        parts = urlsplit(self.base_url)
        if parts.scheme not in {"http", "https"} or not parts.hostname:
            raise DccIoConfigError(f"base_url must be an http(s) URL with a host: {self.base_url!r}")
        for name in ("poll_interval", "reconnect_delay", "request_timeout"):
            if getattr(self, name) <= 0:
                raise DccIoConfigError(f"{name} must be positive")
        for name in ("transport_log_capacity", "channel_log_capacity"):
            if getattr(self, name) <= 0:
                raise DccIoConfigError(f"{name} must be positive")
        if not self.command_channel_path.startswith("/"):
            raise DccIoConfigError("command_channel_path must start with '/'")

    @property
    def http_base(self) -> str:
        """Base URL without a trailing slash."""
        return self.base_url.rstrip("/")

    @property
    def command_channel_url(self) -> str:
        """WebSocket URL of the command channel (same host, port + offset)."""
        parts = urlsplit(self.base_url)
        scheme = "wss" if parts.scheme == "https" else "ws"
        port = parts.port or (443 if parts.scheme == "https" else 80)
        host = parts.hostname or ""
        if ":" in host:
            host = f"[{host}]"
        return f"{scheme}://{host}:{port + self.command_channel_port_offset}{self.command_channel_path}"

    @classmethod
    def from_env(cls, **overrides: Any) -> DccIoConfig:
        """Create configuration from environment variables.

        Reads ``DCCIO_BASE_URL`` and the optional ``DCCIO_*`` tuning
        variables. Explicit keyword arguments override environment values.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        base_url = env.get("DCCIO_BASE_URL")
        if base_url is not None:
            config_kwargs["base_url"] = base_url

        _ENV_FLOAT_MAP = {
            "DCCIO_POLL_INTERVAL": "poll_interval",
            "DCCIO_RECONNECT_DELAY": "reconnect_delay",
            "DCCIO_REQUEST_TIMEOUT": "request_timeout",
        }
        for env_key, field_name in _ENV_FLOAT_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                try:
                    config_kwargs[field_name] = float(val)
                except ValueError as exc:
                    raise DccIoConfigError(f"{env_key} must be a number, got {val!r}") from exc

        if "event_stream_enabled" not in overrides:
            config_kwargs["event_stream_enabled"] = _env_bool(env.get("DCCIO_EVENT_STREAM_ENABLED"), True)
        if "command_channel_enabled" not in overrides:
            config_kwargs["command_channel_enabled"] = _env_bool(env.get("DCCIO_COMMAND_CHANNEL_ENABLED"), True)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
