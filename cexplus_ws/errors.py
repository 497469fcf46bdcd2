# =============================================================================
# CEX.IO Plus WebSocket Client -- Error Types
# =============================================================================

from __future__ import annotations

from typing import Any


class CexPlusError(Exception):
    """Base exception for all client errors."""


class CexPlusConnectionError(CexPlusError):
    """Connection-related errors (failed to connect, session misuse)."""


class CexPlusNotConnectedError(CexPlusConnectionError):
    """Operation attempted with no open transport."""

    def __init__(self, message: str = "Not connected") -> None:
        super().__init__(message)


class CexPlusConnectionClosedError(CexPlusConnectionError):
    """Transport closed while a call was pending."""

    def __init__(self, reason: str | None = None, oid: str | None = None) -> None:
        self.reason = reason or "connection closed"
        self.oid = oid
        if oid:
            super().__init__(f"Connection closed ({self.reason}), oid={oid}")
        else:
            super().__init__(f"Connection closed ({self.reason})")


class CexPlusNotAuthorizedError(CexPlusError):
    """Private operation attempted before a successful handshake."""

    def __init__(self, message: str = "Not authorized") -> None:
        super().__init__(message)


class CexPlusAuthError(CexPlusError):
    """Authentication handshake rejected by the server."""

    def __init__(self, message: str | None) -> None:
        self.message = message
        super().__init__(f"Authorization failure: {message}")


class CexPlusTimeoutError(CexPlusError):
    """No correlated reply within the deadline."""

    def __init__(self, oid: str, reason: str = "request timeout") -> None:
        self.oid = oid
        self.reason = reason
        super().__init__(f"{reason} (oid={oid})")


class CexPlusSendError(CexPlusError):
    """The transport refused to send a frame."""

    def __init__(self, oid: str | None = None) -> None:
        self.oid = oid
        super().__init__(f"Failed to send frame (oid={oid})" if oid else "Failed to send frame")


class CexPlusRequestError(CexPlusError):
    """The server answered a request with an error reply."""

    def __init__(self, oid: str, error: Any, data: Any = None) -> None:
        self.oid = oid
        self.error = error
        self.data = data
        super().__init__(f"{error} (oid={oid})")


class CexPlusClientModeError(CexPlusError):
    """Public call on a private session, or private call on a public one."""


class CexPlusReservedEventError(CexPlusError, ValueError):
    """Event name is reserved for the session's own bookkeeping."""

    def __init__(self, event: str) -> None:
        self.event = event
        super().__init__(f"Event name '{event}' is reserved")
