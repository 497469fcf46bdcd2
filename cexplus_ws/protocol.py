# =============================================================================
# CEX.IO Plus WebSocket Client -- Wire Protocol Codec
# =============================================================================
#
# Outgoing (client -> server), one JSON object per text frame:
#   request:  {"e": <method>, "data": <params>, "oid": <correlation id>}
#   auth:     {"e": "auth", "auth": {"key", "signature", "timestamp"}, "oid": "auth"}
#   ping:     {"e": "ping"}
#
# Incoming (server -> client) is decoded once into a tagged frame:
#   {"e": "pong"}                 -> Pong
#   {"e": <name>, ...}            -> NamedEvent (oid/ok kept for replies)
#   {"oid": "auth", ...}          -> NamedEvent("auth")
#   {"oid": <id>, "ok", "data"}   -> CorrelatedReply
#   anything else                 -> Unroutable
# =============================================================================

from __future__ import annotations

import json
from typing import Any

from .constants import AUTH_OID, EVENT_AUTH, EVENT_PING, EVENT_PONG
from .types import CorrelatedReply, InboundFrame, NamedEvent, Pong, Unroutable

try:
    import orjson

    def _json_loads(data: str | bytes) -> Any:
        return orjson.loads(data)

    def _json_dumps(obj: Any) -> str:
        return orjson.dumps(obj).decode()

except ImportError:

    def _json_loads(data: str | bytes) -> Any:
        return json.loads(data)

    def _json_dumps(obj: Any) -> str:
        return json.dumps(obj, separators=(",", ":"))


class FrameCodec:
    """Encode outgoing frames and decode incoming ones.

    Decoding never raises: malformed input comes back as
    :class:`~cexplus_ws.types.Unroutable`.
    """

    # -- Encode ---------------------------------------------------------------

    def encode_request(self, method: str, params: Any, oid: str) -> str:
        return _json_dumps({"e": method, "data": params, "oid": oid})

    def encode_auth(self, key: str, signature: str, timestamp: float) -> str:
        return _json_dumps(
            {
                "e": EVENT_AUTH,
                "auth": {
                    "key": key,
                    "signature": signature,
                    "timestamp": timestamp,
                },
                "oid": AUTH_OID,
            }
        )

    def encode_ping(self) -> str:
        return _json_dumps({"e": EVENT_PING})

    # -- Decode ---------------------------------------------------------------

    def decode(self, raw: str | bytes) -> InboundFrame:
        try:
            msg = _json_loads(raw)
        except ValueError as exc:
            return Unroutable(raw=raw, reason=f"invalid JSON: {exc}")

        if not isinstance(msg, dict):
            return Unroutable(raw=msg, reason="not a JSON object")

        name = msg.get("e")
        oid = msg.get("oid")
        ok = msg.get("ok")
        data = msg.get("data")
        if not isinstance(oid, str) or not oid:
            oid = None

        if isinstance(name, str) and name:
            if name == EVENT_PONG:
                return Pong(name=name, data=data, message=msg, oid=oid, ok=ok)
            return NamedEvent(name=name, data=data, message=msg, oid=oid, ok=ok)

        if oid == AUTH_OID:
            return NamedEvent(name=EVENT_AUTH, data=data, message=msg, oid=oid, ok=ok)

        if oid is not None:
            return CorrelatedReply(oid=oid, ok=ok, data=data, message=msg)

        return Unroutable(raw=msg, reason="no event name or oid")
