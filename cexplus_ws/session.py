# =============================================================================
# CEX.IO Plus WebSocket Client -- Connection Session
# =============================================================================
#
# Primary public API.  Drives connect -> authenticate -> ready, correlates
# replies to requests by oid, and routes pushed events to subscribers.
# Everything runs on one event loop; frames are routed one at a time in
# arrival order.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

from ._logging import logger
from .auth import AuthHandshake
from .constants import (
    EVENT_CONNECTED,
    EVENT_DISCONNECTED,
    REASON_CLIENT_DISCONNECT,
    REASON_SEND_FAILED,
    REASON_SERVER_DISCONNECTED,
)
from .dispatch import AsyncEventCallback, EventCallback, EventDispatchTable
from .errors import (
    CexPlusClientModeError,
    CexPlusConnectionClosedError,
    CexPlusConnectionError,
    CexPlusError,
    CexPlusNotAuthorizedError,
    CexPlusNotConnectedError,
    CexPlusSendError,
    CexPlusTimeoutError,
)
from .protocol import FrameCodec
from .registry import CorrelationRegistry
from .signer import SignatureSigner
from .transport import WebSocketTransport, build_ssl_context
from .types import (
    ClientCredential,
    ClientOptions,
    ConnectionState,
    CorrelatedReply,
    InboundFrame,
    NamedEvent,
    Pong,
)

OnClose = Callable[[str], Any]
OnError = Callable[[BaseException], Any]


class ConnectionSession:
    """Async client for the CEX.IO Plus WebSocket API.

    Without credentials the session is public and talks to the public
    endpoint; with an API key and secret it is private and must complete
    the auth handshake before ``call_private`` is allowed.

    Args:
        api_key: API key for a private session.
        api_secret: API secret for a private session.
        options: Connection options. Mutually exclusive with keyword
            overrides.
        on_state_change: Called with every new :class:`ConnectionState`.
        **overrides: Fields of :class:`ClientOptions`, e.g.
            ``reply_timeout=5.0``.

    Example::

        async with ConnectionSession(key, secret) as session:
            session.subscribe("executionReport", print)
            orders = await session.call_private("get_my_orders", {"pair": "BTC-USD"})
    """

    def __init__(
        self,
        api_key: str | None = None,
        api_secret: str | bytes | None = None,
        *,
        options: ClientOptions | None = None,
        on_state_change: Callable[[ConnectionState], Any] | None = None,
        **overrides: Any,
    ) -> None:
        if (api_key is None) != (api_secret is None):
            raise ValueError("api_key and api_secret must be given together")
        if options is not None and overrides:
            raise TypeError("Pass either options or keyword overrides, not both")

        self._options = options or ClientOptions(**overrides)
        self._log = self._options.logger or logger
        self._credential = (
            ClientCredential.create(api_key, api_secret)
            if api_key is not None and api_secret is not None
            else None
        )
        self._signer = (
            SignatureSigner(self._credential, log=self._log)
            if self._credential is not None
            else None
        )

        self._codec = FrameCodec()
        self._registry = CorrelationRegistry(log=self._log)
        self._events = EventDispatchTable(log=self._log)
        self._transport = WebSocketTransport(
            on_message=self._on_raw_message,
            on_close=self._on_transport_close,
            on_error=self._on_transport_error,
            connect_timeout=self._options.connect_timeout,
            log=self._log,
        )

        self._state = ConnectionState.DISCONNECTED
        self._on_state_change = on_state_change
        self._on_close: OnClose | None = None
        self._on_error: OnError | None = None
        self._ready: asyncio.Future[None] | None = None
        self._auth_task: asyncio.Task[None] | None = None

    # -- Context manager ------------------------------------------------------

    async def __aenter__(self) -> ConnectionSession:
        await self.connect()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.disconnect()

    # -- Properties -----------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_public(self) -> bool:
        return self._credential is None

    @property
    def is_connected(self) -> bool:
        return self._transport.is_open

    @property
    def is_authorized(self) -> bool:
        return not self.is_public and self._state == ConnectionState.READY

    @property
    def pending_count(self) -> int:
        return len(self._registry)

    @property
    def endpoint(self) -> str:
        if self.is_public:
            return self._options.api_url_public
        return self._options.api_url

    @property
    def options(self) -> ClientOptions:
        return self._options

    # -- Connect / Disconnect -------------------------------------------------

    async def connect(
        self,
        on_close: OnClose | None = None,
        on_error: OnError | None = None,
    ) -> None:
        """Open the connection and wait until the session is ready.

        Args:
            on_close: Called with the reason whenever the socket closes.
            on_error: Called with the exception on a socket error.

        Raises:
            CexPlusConnectionError: The socket could not be opened, or
                closed before the session became ready.
            CexPlusAuthError: The server rejected the credentials.
            CexPlusTimeoutError: Not ready within ``connect_timeout``.
        """
        if self._state != ConnectionState.DISCONNECTED:
            raise CexPlusConnectionError(
                f"Cannot connect while {self._state.value}"
            )

        self._on_close = on_close
        self._on_error = on_error
        self._ready = asyncio.get_running_loop().create_future()
        self._events.set_internal(EVENT_CONNECTED, self._handle_connected)
        self._events.set_internal(EVENT_DISCONNECTED, self._handle_disconnected)

        endpoint = self.endpoint
        self._log.info("connecting to: %s", endpoint)
        self._set_state(ConnectionState.CONNECTING)
        try:
            await self._transport.open(
                endpoint, build_ssl_context(self._options.verify_tls)
            )
        except (CexPlusError, asyncio.CancelledError):
            self._ready = None
            self._set_state(ConnectionState.DISCONNECTED)
            raise

        self._set_state(
            ConnectionState.READY if self.is_public else ConnectionState.AWAITING_AUTH
        )

        ready = self._ready
        try:
            await asyncio.wait_for(
                asyncio.shield(ready), timeout=self._options.connect_timeout
            )
        except asyncio.TimeoutError:
            self._ready = None
            await self._abort("connect timeout")
            raise CexPlusTimeoutError(
                "connect",
                f"Session not ready after {self._options.connect_timeout}s",
            ) from None
        except CexPlusError:
            self._ready = None
            await self._abort("connect failed")
            raise
        except asyncio.CancelledError:
            self._ready = None
            await asyncio.shield(self._abort("connect cancelled"))
            raise
        finally:
            self._ready = None

        self._log.info("connected to: %s", endpoint)

    async def disconnect(self) -> None:
        """Close the connection.  No-op when not connected."""
        if not self._transport.is_open:
            return

        self._set_state(ConnectionState.CLOSING)
        await self._transport.close(REASON_CLIENT_DISCONNECT)
        self._set_state(ConnectionState.DISCONNECTED)

    async def close(self) -> None:
        """Alias for disconnect."""
        await self.disconnect()

    async def _abort(self, reason: str) -> None:
        await self._transport.close(reason)
        self._cancel_auth()
        self._set_state(ConnectionState.DISCONNECTED)

    # -- Subscriptions --------------------------------------------------------

    def subscribe(
        self, event: str, callback: EventCallback | AsyncEventCallback
    ) -> None:
        """Route pushed *event* frames to *callback*.

        A later subscription for the same event replaces the earlier one.
        The callback receives the whole decoded frame and may be a
        coroutine function.

        Raises:
            CexPlusReservedEventError: For ``connected``, ``disconnected``
                and ``auth``.
        """
        self._events.subscribe(event, callback)

    def unsubscribe(self, event: str) -> bool:
        return self._events.unsubscribe(event)

    # -- Calls ----------------------------------------------------------------

    async def ping(self) -> None:
        """Send a keepalive frame.  The ``pong`` reply is dropped."""
        if not self._transport.is_open:
            raise CexPlusNotConnectedError()
        if not await self._transport.send(self._codec.encode_ping()):
            raise CexPlusSendError()

    async def call_public(self, method: str, params: Any = None) -> Any:
        """Call a public API method.  Only valid on a public session."""
        if not self.is_public:
            raise CexPlusClientModeError(
                "Attempt to call public method on private client"
            )
        return await self.request(method, params, requires_auth=False)

    async def call_private(self, method: str, params: Any = None) -> Any:
        """Call a private API method.  Requires a completed handshake."""
        if self.is_public:
            raise CexPlusClientModeError(
                "Attempt to call private method on public client"
            )
        return await self.request(method, params, requires_auth=True)

    async def request(
        self,
        method: str,
        params: Any = None,
        *,
        requires_auth: bool,
        timeout: float | None = None,
    ) -> Any:
        """Send a request and wait for the reply with the same oid.

        Args:
            method: API method name, e.g. ``"get_ticker"``.
            params: Opaque request data (default: empty object).
            requires_auth: Refuse to send unless the session is ready.
            timeout: Seconds to wait, defaults to ``reply_timeout``.

        Returns:
            The reply's ``data``.

        Raises:
            CexPlusNotConnectedError: No open socket.
            CexPlusNotAuthorizedError: *requires_auth* and not ready.
            CexPlusSendError: The socket refused the frame.
            CexPlusTimeoutError: No reply in time.
            CexPlusRequestError: The server answered with an error.
            CexPlusConnectionClosedError: The socket closed first.
        """
        if not self._transport.is_open:
            raise CexPlusNotConnectedError()
        if requires_auth and self._state != ConnectionState.READY:
            raise CexPlusNotAuthorizedError()

        oid = self._registry.new_id(method)
        frame = self._codec.encode_request(
            method, params if params is not None else {}, oid
        )
        future = self._registry.register(
            oid, timeout if timeout is not None else self._options.reply_timeout
        )

        self._log.debug("sending message: %s", frame)
        if not await self._transport.send(frame):
            self._registry.cancel_one(oid, REASON_SEND_FAILED, exc=CexPlusSendError(oid))
        return await future

    # -- Routing --------------------------------------------------------------

    def route(self, frame: InboundFrame) -> None:
        """Deliver one decoded frame.  Never raises."""
        if isinstance(frame, NamedEvent):
            if self._events.dispatch(frame):
                return
            if frame.oid is not None:
                self._registry.resolve(frame.oid, frame.ok, frame.data)
                return
            if isinstance(frame, Pong):
                return
            self._log.warning(
                "Ignoring ws message because of unknown message format: %s",
                frame.message,
            )
            return

        if isinstance(frame, CorrelatedReply):
            self._registry.resolve(frame.oid, frame.ok, frame.data)
            return

        self._log.warning("Unroutable message (%s): %r", frame.reason, frame.raw)

    def _on_raw_message(self, data: str | bytes) -> None:
        self._log.debug("incoming message: %s", data)
        try:
            frame = self._codec.decode(data)
            self.route(frame)
        except Exception as exc:
            self._log.error("Failed to route message: %s", exc)

    # -- Internal event handlers ----------------------------------------------

    def _handle_connected(self, event: NamedEvent) -> None:
        if self._ready is None or self._ready.done():
            self._log.debug("Ignoring 'connected' outside of connect()")
            return

        if self.is_public:
            self._ready.set_result(None)
            return

        if self._auth_task is not None:
            self._log.debug("Ignoring repeated 'connected' during auth")
            return
        self._auth_task = asyncio.ensure_future(self._authenticate())

    def _handle_disconnected(self, event: NamedEvent) -> None:
        self._log.info("Server reported disconnect")
        if self._state == ConnectionState.READY and not self.is_public:
            self._set_state(ConnectionState.AWAITING_AUTH)
        self._registry.cancel_all(REASON_SERVER_DISCONNECTED)

    async def _authenticate(self) -> None:
        if self._signer is None:
            raise CexPlusClientModeError("Public client cannot authenticate")
        handshake = AuthHandshake(
            self._signer,
            self._codec,
            self._events,
            self._transport.send,
            timeout=self._options.reply_timeout,
            log=self._log,
        )
        try:
            await handshake.run()
        except CexPlusError as exc:
            self._fail_ready(exc)
            return
        finally:
            if self._auth_task is asyncio.current_task():
                self._auth_task = None

        if self._state == ConnectionState.AWAITING_AUTH:
            self._set_state(ConnectionState.READY)
        if self._ready is not None and not self._ready.done():
            self._ready.set_result(None)

    def _cancel_auth(self) -> None:
        if self._auth_task is not None:
            self._auth_task.cancel()
            self._auth_task = None

    def _fail_ready(self, exc: BaseException) -> None:
        if self._ready is not None and not self._ready.done():
            self._ready.set_exception(exc)

    # -- Internal transport callbacks -----------------------------------------

    def _on_transport_error(self, exc: BaseException) -> None:
        self._log.warning("Socket error: %s", exc)
        reason = str(exc) or exc.__class__.__name__
        self._registry.cancel_all(reason)
        self._fail_ready(CexPlusConnectionClosedError(reason))
        if self._on_error is not None:
            try:
                self._on_error(exc)
            except Exception as cb_exc:
                self._log.error("on_error callback failed: %s", cb_exc)

    def _on_transport_close(self, reason: str) -> None:
        self._log.info("Connection closed: %s", reason)
        self._registry.cancel_all(reason)
        self._cancel_auth()
        self._events.cancel_tasks()
        self._fail_ready(CexPlusConnectionClosedError(reason))
        self._set_state(ConnectionState.DISCONNECTED)
        if self._on_close is not None:
            try:
                self._on_close(reason)
            except Exception as cb_exc:
                self._log.error("on_close callback failed: %s", cb_exc)

    # -- State management -----------------------------------------------------

    def _set_state(self, new_state: ConnectionState) -> None:
        if new_state == self._state:
            return
        old = self._state
        self._state = new_state
        self._log.debug("State: %s -> %s", old.value, new_state.value)
        if self._on_state_change:
            self._on_state_change(new_state)
