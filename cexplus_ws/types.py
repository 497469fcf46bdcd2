# =============================================================================
# CEX.IO Plus WebSocket Client -- Type Definitions
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from .constants import (
    CONNECTION_TIMEOUT,
    DEFAULT_HOST,
    PRIVATE_PATH,
    PUBLIC_PATH,
    REPLY_TIMEOUT,
)


class ConnectionState(str, Enum):
    """Session lifecycle state.

    Typical flow: DISCONNECTED -> CONNECTING -> AWAITING_AUTH -> READY.
    Public sessions skip AWAITING_AUTH. CLOSING is entered by an explicit
    disconnect and always ends in DISCONNECTED.
    """

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    AWAITING_AUTH = "awaiting_auth"
    READY = "ready"
    CLOSING = "closing"


@dataclass(frozen=True)
class ClientCredential:
    """API key pair. The secret never shows up in ``repr()``."""

    key: str
    secret: bytes = field(repr=False)

    @classmethod
    def create(cls, key: str, secret: str | bytes) -> ClientCredential:
        if isinstance(secret, str):
            secret = secret.encode("utf-8")
        return cls(key=key, secret=secret)


# -- Inbound frames -----------------------------------------------------------


@dataclass(frozen=True, slots=True)
class NamedEvent:
    """Frame carrying an event name (``e``).

    Attributes:
        name: Event name, e.g. ``"executionReport"``.
        data: Opaque payload from ``data``.
        message: The whole decoded frame, handed to subscribers.
        oid: Correlation id when the frame also answers a request.
        ok: Reply status (``"ok"`` / ``"error"``) when present.
    """

    name: str
    data: Any
    message: dict[str, Any]
    oid: str | None = None
    ok: str | None = None


@dataclass(frozen=True, slots=True)
class CorrelatedReply:
    """Frame matched to a pending call by ``oid`` only."""

    oid: str
    ok: str | None
    data: Any
    message: dict[str, Any]


@dataclass(frozen=True, slots=True)
class Pong(NamedEvent):
    """Keepalive acknowledgement (``{"e": "pong"}``)."""


@dataclass(frozen=True, slots=True)
class Unroutable:
    """Frame that could not be decoded or has no routing key."""

    raw: Any
    reason: str


InboundFrame = Union[NamedEvent, CorrelatedReply, Pong, Unroutable]


# -- Pending calls ------------------------------------------------------------


@dataclass
class PendingCall:
    """A request waiting for its correlated reply.

    Attributes:
        oid: Correlation id sent with the request.
        created_at: ``loop.time()`` when registered.
        deadline: Seconds allowed before the call times out.
        future: Completed exactly once with the reply or an error.
        timer: Handle of the scheduled timeout.
    """

    oid: str
    created_at: float
    deadline: float
    future: asyncio.Future[Any]
    timer: asyncio.TimerHandle | None = None


# -- Configuration ------------------------------------------------------------


def _with_slash(url: str) -> str:
    return url if url.endswith("/") else f"{url}/"


@dataclass
class ClientOptions:
    """Connection options.

    Attributes:
        reply_timeout: Seconds to wait for a correlated reply.
        connect_timeout: Seconds to wait for the session to become ready.
        verify_tls: Verify the server certificate. Turn off only against
            demo environments with self-signed certificates.
        host: Base URL. Endpoint URLs are derived from it unless given.
        api_url: Private endpoint, default ``{host}ws/``.
        api_url_public: Public endpoint, default ``{host}ws-public/``.
        logger: Log sink. Defaults to the ``cexplus_ws`` logger.
    """

    reply_timeout: float = REPLY_TIMEOUT
    connect_timeout: float = CONNECTION_TIMEOUT
    verify_tls: bool = True
    host: str = DEFAULT_HOST
    api_url: str | None = None
    api_url_public: str | None = None
    logger: logging.Logger | None = None

    def __post_init__(self) -> None:
        if self.reply_timeout <= 0:
            raise ValueError("reply_timeout must be positive")
        if self.connect_timeout <= 0:
            raise ValueError("connect_timeout must be positive")
        self.host = _with_slash(self.host)
        self.api_url = _with_slash(self.api_url or f"{self.host}{PRIVATE_PATH}")
        self.api_url_public = _with_slash(
            self.api_url_public or f"{self.host}{PUBLIC_PATH}"
        )
