# =============================================================================
# CEX.IO Plus WebSocket Client -- Synchronous Wrapper
# =============================================================================
#
# Thread-based wrapper around ConnectionSession for blocking usage.  The
# session lives on a private event loop; every call is marshalled onto it,
# so the registry and dispatch table are still only touched by one thread.
# =============================================================================

from __future__ import annotations

import asyncio
import concurrent.futures
import threading
from typing import Any, Callable, Coroutine

from ._logging import logger
from .dispatch import EventCallback
from .errors import CexPlusNotConnectedError, CexPlusTimeoutError
from .session import ConnectionSession, OnClose, OnError
from .types import ClientOptions, ConnectionState


class SyncSession:
    """Blocking / thread-based client.

    Runs a :class:`ConnectionSession` on a background thread. Public
    methods are thread-safe and block until complete. Subscription
    callbacks are invoked on the background thread.

    Args:
        api_key: API key for a private session.
        api_secret: API secret for a private session.
        options: Connection options.
        **overrides: Fields of :class:`ClientOptions`.

    Example::

        with SyncSession() as client:
            ticker = client.call_public("get_ticker", {"pairs": ["BTC-USD"]})
    """

    def __init__(
        self,
        api_key: str | None = None,
        api_secret: str | bytes | None = None,
        *,
        options: ClientOptions | None = None,
        **overrides: Any,
    ) -> None:
        self._session = ConnectionSession(
            api_key, api_secret, options=options, **overrides
        )
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._loop_started = threading.Event()
        self._log = self._session.options.logger or logger

    # -- Context manager ------------------------------------------------------

    def __enter__(self) -> SyncSession:
        self.connect()
        return self

    def __exit__(self, *exc: Any) -> None:
        self.disconnect()

    # -- Properties -----------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._session.state

    @property
    def is_connected(self) -> bool:
        return self._session.is_connected

    @property
    def is_authorized(self) -> bool:
        return self._session.is_authorized

    # -- Lifecycle ------------------------------------------------------------

    def connect(
        self,
        on_close: OnClose | None = None,
        on_error: OnError | None = None,
        timeout: float | None = None,
    ) -> None:
        """Connect in a background thread.  Blocks until ready."""
        self._start_loop()
        try:
            self._call(self._session.connect(on_close, on_error), timeout)
        except Exception:
            # Stop the background thread so a retry starts clean
            self._stop_loop()
            raise

    def disconnect(self) -> None:
        """Disconnect and stop the background thread."""
        if self._loop is None:
            return
        try:
            self._call(self._session.disconnect(), timeout=10.0)
        finally:
            self._stop_loop()

    def close(self) -> None:
        """Alias for disconnect."""
        self.disconnect()

    # -- Calls ----------------------------------------------------------------

    def ping(self) -> None:
        self._call(self._session.ping())

    def call_public(self, method: str, params: Any = None) -> Any:
        return self._call(self._session.call_public(method, params))

    def call_private(self, method: str, params: Any = None) -> Any:
        return self._call(self._session.call_private(method, params))

    # -- Subscriptions --------------------------------------------------------

    def subscribe(self, event: str, callback: EventCallback) -> None:
        self._on_loop(self._session.subscribe, event, callback)

    def unsubscribe(self, event: str) -> None:
        self._on_loop(self._session.unsubscribe, event)

    # -- Internal -------------------------------------------------------------

    def _call(
        self, coro: Coroutine[Any, Any, Any], timeout: float | None = None
    ) -> Any:
        loop = self._loop
        if loop is None:
            coro.close()
            raise CexPlusNotConnectedError()

        future = asyncio.run_coroutine_threadsafe(coro, loop)
        try:
            return future.result(timeout=timeout)
        except concurrent.futures.TimeoutError:
            future.cancel()
            raise CexPlusTimeoutError("sync", f"Call timed out after {timeout}s")

    def _on_loop(self, fn: Callable[..., Any], *args: Any) -> None:
        loop = self._loop
        if loop is None:
            fn(*args)
            return
        future = asyncio.run_coroutine_threadsafe(_apply(fn, *args), loop)
        future.result()

    def _start_loop(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._loop_started.clear()
        self._thread = threading.Thread(
            target=self._run_loop, daemon=True, name="cexplus-ws"
        )
        self._thread.start()
        self._loop_started.wait()

    def _stop_loop(self) -> None:
        loop = self._loop
        if loop is not None:
            loop.call_soon_threadsafe(loop.stop)
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=5.0)
        self._thread = None

    def _run_loop(self) -> None:
        """Background thread: run the event loop until stopped."""
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop
        self._loop_started.set()
        try:
            loop.run_forever()
        except Exception as exc:
            self._log.error("Background loop error: %s", exc)
        finally:
            self._loop = None
            loop.close()


async def _apply(fn: Callable[..., Any], *args: Any) -> Any:
    return fn(*args)
