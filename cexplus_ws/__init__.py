"""Async client for the CEX.IO Plus WebSocket API.

Public data::

    from cexplus_ws import connect

    async with connect() as client:
        ticker = await client.call_public("get_ticker", {"pairs": ["BTC-USD"]})

Private account data::

    async with connect(api_key, api_secret) as client:
        client.subscribe("executionReport", print)
        orders = await client.call_private("get_my_orders", {"pair": "BTC-USD"})

Sync usage::

    from cexplus_ws import SyncSession

    with SyncSession(api_key, api_secret) as client:
        balance = client.call_private("get_my_account_status_v3", {})

Optional extras::

    pip install cexplus-ws[fast]   # orjson codec
"""

from typing import Any

from ._version import __version__
from .errors import (
    CexPlusAuthError,
    CexPlusClientModeError,
    CexPlusConnectionClosedError,
    CexPlusConnectionError,
    CexPlusError,
    CexPlusNotAuthorizedError,
    CexPlusNotConnectedError,
    CexPlusRequestError,
    CexPlusReservedEventError,
    CexPlusSendError,
    CexPlusTimeoutError,
)
from .session import ConnectionSession
from .sync_client import SyncSession
from .types import ClientCredential, ClientOptions, ConnectionState


def connect(
    api_key: str | None = None,
    api_secret: str | bytes | None = None,
    **kwargs: Any,
) -> ConnectionSession:
    """Create a session.

    Use as an async context manager. Without credentials the session is
    public. Keyword arguments are forwarded to :class:`ConnectionSession`
    -- common ones: ``reply_timeout``, ``verify_tls``, ``host``.

    Raises:
        CexPlusConnectionError: If the connection cannot be established.
        CexPlusAuthError: If authentication is rejected.
    """
    return ConnectionSession(api_key, api_secret, **kwargs)


__all__ = [
    "__version__",
    "connect",
    "ConnectionSession",
    "SyncSession",
    "ClientCredential",
    "ClientOptions",
    "ConnectionState",
    "CexPlusError",
    "CexPlusConnectionError",
    "CexPlusNotConnectedError",
    "CexPlusConnectionClosedError",
    "CexPlusNotAuthorizedError",
    "CexPlusAuthError",
    "CexPlusTimeoutError",
    "CexPlusSendError",
    "CexPlusRequestError",
    "CexPlusClientModeError",
    "CexPlusReservedEventError",
]
