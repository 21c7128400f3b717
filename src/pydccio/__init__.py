"""pydccio - Async Python client that mirrors DCC IO daemon state."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pydccio")
except PackageNotFoundError:
    __version__ = "0+local"
from pydccio.client import DccIoClient
from pydccio.config import DccIoConfig
from pydccio.exceptions import (
    DccIoApiError,
    DccIoChannelNotOpenError,
    DccIoConfigError,
    DccIoError,
    DccIoMessageError,
    DccIoTransportError,
    DccIoValidationError,
)
from pydccio.models import (
    AccessoryStatus,
    ChannelMessage,
    ChannelState,
    CommandStationInfo,
    ConnectionRecord,
    ConnectionRequest,
    ControllerRole,
    DccEvent,
    DccEventType,
    PowerStatus,
    SystemInfo,
    ThrottleKey,
    ThrottlePatch,
    ThrottleState,
)
from pydccio.state.events import Channel, StatusLevel, StatusMessage
from pydccio.state.log_buffer import BoundedLogBuffer, LogCategory, LogEntry
from pydccio.state.store import StateSnapshot

__all__ = [
    "__version__",
    "AccessoryStatus",
    "BoundedLogBuffer",
    "Channel",
    "ChannelMessage",
    "ChannelState",
    "CommandStationInfo",
    "ConnectionRecord",
    "ConnectionRequest",
    "ControllerRole",
    "DccEvent",
    "DccEventType",
    "DccIoApiError",
    "DccIoChannelNotOpenError",
    "DccIoClient",
    "DccIoConfig",
    "DccIoConfigError",
    "DccIoError",
    "DccIoMessageError",
    "DccIoTransportError",
    "DccIoValidationError",
    "LogCategory",
    "LogEntry",
    "PowerStatus",
    "StateSnapshot",
    "StatusLevel",
    "StatusMessage",
    "SystemInfo",
    "ThrottleKey",
    "ThrottlePatch",
    "ThrottleState",
]
