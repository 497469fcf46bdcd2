# =============================================================================
# CEX.IO Plus WebSocket Client -- Transport
# =============================================================================
#
# Owns one websockets client connection: open, send, close, and a receive
# loop that forwards text frames.  Knows nothing about the API protocol.
# Close is reported exactly once per opened connection.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
import ssl
from typing import Any, Callable

import websockets.asyncio.client
from websockets.exceptions import ConnectionClosed, ConnectionClosedError

from ._logging import logger
from .constants import (
    CLOSE_TIMEOUT,
    CONNECTION_TIMEOUT,
    MAX_MESSAGE_SIZE,
    REASON_CLIENT_DISCONNECT,
    REASON_CONNECTION_CLOSED,
    WS_CLOSE_NORMAL,
)
from .errors import CexPlusConnectionError, CexPlusTimeoutError


def build_ssl_context(verify: bool) -> ssl.SSLContext | None:
    """TLS context for ``wss://`` endpoints.

    Returns ``None`` (library default, full verification) when *verify* is
    set, otherwise a context that accepts any certificate.
    """
    if verify:
        return None
    ctx = ssl.create_default_context()
    ctx.check_hostname = False
    ctx.verify_mode = ssl.CERT_NONE
    return ctx


def _close_reason(exc: ConnectionClosed) -> str:
    frame = exc.rcvd
    if frame is None:
        return REASON_CONNECTION_CLOSED
    return frame.reason or f"closed with code {frame.code}"


class WebSocketTransport:
    """Single WebSocket connection with callback-style events.

    Args:
        on_message: Called with every received frame, in arrival order.
        on_close: Called once with a reason when the connection ends.
        on_error: Called with the exception on an abnormal close, before
            ``on_close``.
        connect_timeout: Seconds allowed for the opening handshake.
        log: Log sink, defaults to the package logger.
    """

    def __init__(
        self,
        *,
        on_message: Callable[[str | bytes], Any] | None = None,
        on_close: Callable[[str], Any] | None = None,
        on_error: Callable[[BaseException], Any] | None = None,
        connect_timeout: float = CONNECTION_TIMEOUT,
        log: logging.Logger | None = None,
    ) -> None:
        self._on_message = on_message
        self._on_close = on_close
        self._on_error = on_error
        self._connect_timeout = connect_timeout
        self._log = log or logger

        self._ws: websockets.asyncio.client.ClientConnection | None = None
        self._recv_task: asyncio.Task[None] | None = None
        self._closed_reported = True
        self._closing_reason: str | None = None

    # -- Properties -----------------------------------------------------------

    @property
    def is_open(self) -> bool:
        return self._ws is not None and not self._closed_reported

    # -- Open / Close ---------------------------------------------------------

    async def open(self, url: str, ssl_context: ssl.SSLContext | None = None) -> None:
        """Open the WebSocket and start the receive loop."""
        if self.is_open:
            raise CexPlusConnectionError("Transport is already open")

        kwargs: dict[str, Any] = {
            "max_size": MAX_MESSAGE_SIZE,
            "open_timeout": None,  # asyncio.wait_for handles timeout
            "close_timeout": CLOSE_TIMEOUT,
        }
        if ssl_context is not None and url.startswith("wss://"):
            kwargs["ssl"] = ssl_context

        try:
            self._ws = await asyncio.wait_for(
                websockets.asyncio.client.connect(url, **kwargs),
                timeout=self._connect_timeout,
            )
        except asyncio.TimeoutError:
            self._ws = None
            raise CexPlusTimeoutError(
                "connect", f"Connection timed out after {self._connect_timeout}s"
            )
        except Exception as exc:
            self._ws = None
            raise CexPlusConnectionError(f"Failed to connect: {exc}") from exc

        self._closed_reported = False
        self._closing_reason = None
        self._log.debug("WebSocket open: %s", url)
        self._recv_task = asyncio.create_task(self._recv_loop(self._ws))

    async def close(self, reason: str = REASON_CLIENT_DISCONNECT) -> None:
        """Close gracefully and wait until the close has been reported."""
        ws = self._ws
        if ws is None or self._closed_reported:
            return

        self._closing_reason = reason
        try:
            await ws.close(WS_CLOSE_NORMAL, reason)
        except Exception as exc:
            self._log.debug("Close failed: %s", exc)

        task = self._recv_task
        if task is not None and task is not asyncio.current_task():
            await asyncio.gather(task, return_exceptions=True)
        # Receive loop normally reports; cover a loop that never started.
        self._report_close(ws, reason)

    # -- Send -----------------------------------------------------------------

    async def send(self, data: str) -> bool:
        """Send a text frame.  Returns True on success."""
        ws = self._ws
        if ws is None or self._closed_reported:
            return False

        try:
            await ws.send(data)
            return True
        except ConnectionClosed:
            self._log.debug("Send failed: connection closed")
            return False
        except Exception as exc:
            self._log.debug("Send failed: %s", exc)
            return False

    # -- Internal: receive loop -----------------------------------------------

    async def _recv_loop(self, ws: websockets.asyncio.client.ClientConnection) -> None:
        """Read messages from the WebSocket until closed."""
        try:
            async for message in ws:
                self._deliver(message)
        except ConnectionClosedError as exc:
            self._log.warning("WebSocket closed abnormally: %s", exc)
            self._report_error(exc)
            self._report_close(ws, _close_reason(exc))
            return
        except asyncio.CancelledError:
            self._report_close(ws, REASON_CONNECTION_CLOSED)
            raise
        except Exception as exc:
            self._log.warning("Receive loop error: %s", exc)
            self._report_error(exc)
            self._report_close(ws, str(exc) or REASON_CONNECTION_CLOSED)
            return

        self._log.debug("WebSocket closed normally")
        self._report_close(
            ws, self._closing_reason or ws.close_reason or REASON_CONNECTION_CLOSED
        )

    def _deliver(self, message: str | bytes) -> None:
        if self._on_message is None:
            return
        try:
            self._on_message(message)
        except Exception as exc:
            self._log.error("Message handler error: %s", exc)

    def _report_error(self, exc: BaseException) -> None:
        if self._on_error is not None:
            self._on_error(exc)

    def _report_close(
        self, ws: websockets.asyncio.client.ClientConnection, reason: str
    ) -> None:
        if ws is not self._ws or self._closed_reported:
            return
        self._closed_reported = True
        self._ws = None
        self._recv_task = None
        self._log.debug("WebSocket closed: %s", reason)
        if self._on_close is not None:
            self._on_close(reason)
