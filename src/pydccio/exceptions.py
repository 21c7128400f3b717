"""Custom exception hierarchy for pydccio."""

from __future__ import annotations


class DccIoError(Exception):
    """Base exception for all pydccio errors."""


class DccIoConfigError(DccIoError):
    """Invalid or missing configuration."""


class DccIoTransportError(DccIoError):
    """HTTP-level failure (network, non-2xx without error body, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class DccIoApiError(DccIoError):
    """Daemon rejected a request with an ``{"error": ...}`` body."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class DccIoMessageError(DccIoError):
    """An inbound event or channel message could not be parsed."""

    def __init__(self, message: str, *, raw: str = "") -> None:
        self.raw = raw
        super().__init__(message)


class DccIoValidationError(DccIoError, ValueError):
    """User input rejected before anything was sent.

    The client also publishes the message as an error status line, so UI
    code may either catch this or just render the snapshot.
    """


class DccIoChannelNotOpenError(DccIoValidationError):
    """The command channel is not open."""
