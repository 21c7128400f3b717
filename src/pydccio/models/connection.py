"""Connection registry models (``GET /connections``, ``GET /api/systems``)."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, ClassVar

from pydantic import AliasChoices, Field, field_validator

from pydccio.models._base import DccBaseModel, DccEnum, is_unset_marker


class PowerStatus(DccEnum):
    """Track power as reported by the command station."""

    ON = "ON"
    OFF = "OFF"
    UNKNOWN = "UNKNOWN"


class ControllerRole(DccEnum):
    """Roles a connection can hold. The daemon allows one connection per role."""

    THROTTLES = "throttles"
    ACCESSORIES = "accessories"
    UNKNOWN = "unknown"


class CommandStationInfo(DccBaseModel):
    """Command-station metadata, filled in once a version report arrives."""

    _SENTINEL_RULES: ClassVar[dict[str, Callable[..., bool]]] = {
        "hardware_type": is_unset_marker,
        "software_version": is_unset_marker,
    }

    manufacturer: str | None = None
    model: str | None = None
    version: str | None = None
    version_string: str | None = None
    hardware_type: str | None = Field(default=None, validation_alias=AliasChoices("type", "hardwareType", "hardware_type"))
    """Hardware type code (wire key ``type``)."""
    software_version: str | None = None

    @field_validator("*", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    def describe(self) -> str:
        """One-line description in the panel's format."""
        parts: list[str] = []
        if self.manufacturer:
            parts.append(self.manufacturer)
        if self.model:
            parts.append(self.model)
        if self.version:
            parts.append(f"v{self.version}")
        text = " ".join(parts)
        if self.version_string:
            text += f" ({self.version_string})"
        if self.hardware_type:
            text += f" hardware type: {self.hardware_type}"
        if self.software_version:
            text += f" software version: {self.software_version}"
        return text.strip()


class ConnectionRecord(DccBaseModel):
    """One command-station connection as reported by the daemon."""

    id: str
    system_type: str = ""
    connected: bool = False
    command_station: CommandStationInfo | None = None
    power_status: PowerStatus | None = None
    roles: frozenset[ControllerRole] = Field(default_factory=frozenset)

    @field_validator("id")
    @classmethod
    def _require_id(cls, value: str) -> str:
        ident = value.strip()
        if not ident:
            raise ValueError("connection id must be non-empty")
        return ident

    @field_validator("command_station", mode="before")
    @classmethod
    def _empty_station(cls, value: Any) -> Any:
        if isinstance(value, dict) and not value:
            return None
        return value

    @field_validator("roles", mode="before")
    @classmethod
    def _known_roles(cls, value: Any) -> Any:
        if not isinstance(value, (list, tuple, set, frozenset)):
            return frozenset()
        roles = {ControllerRole(item) for item in value if isinstance(item, str)}
        roles.discard(ControllerRole.UNKNOWN)
        return frozenset(roles)

    def has_role(self, role: ControllerRole) -> bool:
        return role in self.roles


class SystemInfo(DccBaseModel):
    """A supported controller system type (``GET /api/systems``)."""

    id: str
    name: str = ""
    connection_types: tuple[str, ...] = ()

    @property
    def is_network(self) -> bool:
        return "network" in self.connection_types


class ConnectionRequest(DccBaseModel):
    """Parameters for ``POST /connections/create``.

    Network systems use ``host``/``port``; serial systems use
    ``port_name`` plus the optional line settings.
    """

    id: str
    system_type: str
    user_name: str | None = None
    system_prefix: str | None = None
    host: str | None = None
    port: int | None = None
    port_name: str | None = None
    baud_rate: int | None = None
    flow_control: str | None = None

    def to_query(self, *, network: bool) -> dict[str, str]:
        query: dict[str, str] = {"id": self.id, "systemType": self.system_type}
        if self.user_name:
            query["userName"] = self.user_name
        if self.system_prefix:
            query["systemPrefix"] = self.system_prefix
        if network:
            query["host"] = self.host or ""
            query["port"] = "" if self.port is None else str(self.port)
        else:
            query["portName"] = self.port_name or ""
            if self.baud_rate:
                query["baudRate"] = str(self.baud_rate)
            if self.flow_control:
                query["flowControl"] = self.flow_control
        return query
