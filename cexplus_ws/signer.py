# =============================================================================
# CEX.IO Plus WebSocket Client -- Request Signing
# =============================================================================
#
# HMAC-SHA256 over "<timestamp><api key>", hex encoded.  The timestamp is
# rendered with repr(float), the same text json.dumps puts on the wire.
# =============================================================================

from __future__ import annotations

import hashlib
import hmac
import logging
import time

from ._logging import logger
from .types import ClientCredential


class SignatureSigner:
    """Computes auth handshake signatures for one credential.

    Args:
        credential: API key and secret. Only the key is ever logged.
        log: Log sink, defaults to the package logger.
    """

    def __init__(
        self, credential: ClientCredential, log: logging.Logger | None = None
    ) -> None:
        self._credential = credential
        self._log = log or logger

    @property
    def api_key(self) -> str:
        return self._credential.key

    @staticmethod
    def timestamp() -> float:
        """Current unix time in seconds (fractional)."""
        return time.time()

    def sign(self, timestamp: float) -> str:
        """Return the hex HMAC-SHA256 signature for *timestamp*."""
        data = f"{timestamp!r}{self._credential.key}"
        self._log.debug("signature params: %s", data)
        return hmac.new(
            self._credential.secret,
            data.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()

    def __repr__(self) -> str:
        return f"SignatureSigner(key={self._credential.key!r})"
