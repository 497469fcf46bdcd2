"""Shared fixtures: an in-process fake exchange speaking the CEX.IO Plus protocol."""

import asyncio
import hashlib
import hmac
import json

import pytest_asyncio
import websockets.asyncio.server
from websockets.exceptions import ConnectionClosed

API_KEY = "integration-key"
API_SECRET = "integration-secret"


def expected_signature(timestamp: float, key: str = API_KEY) -> str:
    return hmac.new(
        API_SECRET.encode(), f"{timestamp!r}{key}".encode(), hashlib.sha256
    ).hexdigest()


class FakeExchange:
    """Minimal server side of the protocol.

    Greets every connection with ``connected``, checks auth signatures on
    the private path and echoes requests back as replies. A few method
    names trigger special behaviour:

    - ``hang``: never answered
    - ``fail``: answered with ``ok: "error"``
    - ``close_me``: the server closes the socket
    - ``kick``: the server sends ``disconnected``
    - ``push``: an ``executionReport`` event is pushed before the reply
    """

    api_key = API_KEY
    api_secret = API_SECRET

    def __init__(self) -> None:
        self.port = 0
        self.received: list[dict] = []
        self.paths: list[str] = []

    @property
    def host(self) -> str:
        return f"ws://127.0.0.1:{self.port}/"

    async def handler(self, ws: websockets.asyncio.server.ServerConnection) -> None:
        self.paths.append(ws.request.path)
        private = ws.request.path.rstrip("/") == "/ws"
        await ws.send(json.dumps({"e": "connected"}))
        try:
            async for raw in ws:
                msg = json.loads(raw)
                self.received.append(msg)
                await self._answer(ws, msg, private)
        except ConnectionClosed:
            pass

    async def _answer(self, ws, msg: dict, private: bool) -> None:
        name = msg.get("e")
        oid = msg.get("oid")

        if name == "ping":
            await ws.send(json.dumps({"e": "pong"}))
        elif name == "auth":
            auth = msg["auth"]
            ok = private and auth["signature"] == expected_signature(
                auth["timestamp"], auth["key"]
            )
            data = {"ok": "ok"} if ok else {"ok": "error", "error": "Invalid signature"}
            await ws.send(json.dumps({"e": "auth", "oid": "auth", "ok": "ok", "data": data}))
        elif name == "hang":
            return
        elif name == "fail":
            await ws.send(
                json.dumps({"e": name, "oid": oid, "ok": "error", "data": {"error": "Bad request"}})
            )
        elif name == "close_me":
            await ws.close(1000, "server shutdown")
        elif name == "kick":
            await ws.send(json.dumps({"e": "disconnected"}))
        else:
            if name == "push":
                await ws.send(json.dumps({"e": "executionReport", "data": {"status": "NEW"}}))
            await ws.send(
                json.dumps({"e": name, "oid": oid, "ok": "ok", "data": {"echo": msg.get("data")}})
            )


@pytest_asyncio.fixture
async def exchange():
    fake = FakeExchange()
    async with websockets.asyncio.server.serve(fake.handler, "127.0.0.1", 0) as server:
        fake.port = server.sockets[0].getsockname()[1]
        yield fake
        # Let in-flight handlers observe the client close
        await asyncio.sleep(0)
