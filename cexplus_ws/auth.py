# =============================================================================
# CEX.IO Plus WebSocket Client -- Auth Handshake
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from ._logging import logger
from .constants import AUTH_OID, EVENT_AUTH, REPLY_OK
from .dispatch import EventDispatchTable
from .errors import CexPlusAuthError, CexPlusSendError, CexPlusTimeoutError
from .protocol import FrameCodec
from .signer import SignatureSigner
from .types import NamedEvent


class AuthHandshake:
    """One-shot authentication exchange for a private session.

    Installs a handler for the reserved ``auth`` event, sends the signed
    auth frame and waits for the first reply.  Never retries.

    Args:
        signer: Signs ``<timestamp><api key>``.
        codec: Builds the auth frame.
        events: Dispatch table receiving the ``auth`` reply.
        send: Coroutine sending one text frame, returning True on success.
        timeout: Seconds to wait for the reply.
        log: Log sink, defaults to the package logger.
    """

    def __init__(
        self,
        signer: SignatureSigner,
        codec: FrameCodec,
        events: EventDispatchTable,
        send: Callable[[str], Awaitable[bool]],
        *,
        timeout: float,
        log: logging.Logger | None = None,
    ) -> None:
        self._signer = signer
        self._codec = codec
        self._events = events
        self._send = send
        self._timeout = timeout
        self._log = log or logger
        self._reply: asyncio.Future[Any] | None = None

    async def run(self) -> None:
        """Authenticate.

        Raises:
            CexPlusAuthError: The server rejected the credentials.
            CexPlusSendError: The auth frame could not be sent.
            CexPlusTimeoutError: No reply within the timeout.
        """
        if self._reply is not None:
            raise RuntimeError("AuthHandshake already ran")

        self._reply = asyncio.get_running_loop().create_future()
        self._events.set_internal(EVENT_AUTH, self._on_reply)
        try:
            timestamp = self._signer.timestamp()
            frame = self._codec.encode_auth(
                self._signer.api_key,
                self._signer.sign(timestamp),
                timestamp,
            )
            self._log.debug("sending auth request for key %s", self._signer.api_key)
            if not await self._send(frame):
                raise CexPlusSendError(AUTH_OID)

            try:
                data = await asyncio.wait_for(self._reply, timeout=self._timeout)
            except asyncio.TimeoutError:
                raise CexPlusTimeoutError(AUTH_OID, "auth timeout") from None
        finally:
            self._events.remove_internal(EVENT_AUTH, self._on_reply)

        if isinstance(data, dict) and data.get("ok") == REPLY_OK:
            self._log.info("Authorized as %s", self._signer.api_key)
            return

        error = data.get("error") if isinstance(data, dict) else data
        self._log.error("Authorization failure: %s", error)
        raise CexPlusAuthError(error)

    def _on_reply(self, event: NamedEvent) -> None:
        if self._reply is None or self._reply.done():
            self._log.debug("Ignoring extra auth reply: %s", event.message)
            return
        self._reply.set_result(event.data)
