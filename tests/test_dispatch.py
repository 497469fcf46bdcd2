"""Tests for the event dispatch table."""

import asyncio
from unittest.mock import MagicMock

import pytest

from cexplus_ws.dispatch import EventDispatchTable
from cexplus_ws.errors import CexPlusReservedEventError
from cexplus_ws.types import NamedEvent


def _event(name: str, data=None) -> NamedEvent:
    return NamedEvent(name=name, data=data, message={"e": name, "data": data})


class TestSubscribe:
    def test_dispatch_invokes_handler_with_message(self):
        table = EventDispatchTable()
        received = []
        table.subscribe("executionReport", received.append)
        assert table.dispatch(_event("executionReport", {"id": 1})) is True
        assert received == [{"e": "executionReport", "data": {"id": 1}}]

    def test_last_writer_wins(self):
        table = EventDispatchTable()
        first, second = [], []
        table.subscribe("executionReport", first.append)
        table.subscribe("executionReport", second.append)
        table.dispatch(_event("executionReport"))
        assert first == []
        assert len(second) == 1

    def test_unknown_event(self):
        table = EventDispatchTable()
        assert table.dispatch(_event("nothing")) is False

    def test_unsubscribe(self):
        table = EventDispatchTable()
        table.subscribe("tradeUpdate", lambda msg: None)
        assert table.unsubscribe("tradeUpdate") is True
        assert table.unsubscribe("tradeUpdate") is False
        assert table.handles("tradeUpdate") is False

    @pytest.mark.parametrize("name", ["connected", "disconnected", "auth"])
    def test_reserved_names_rejected(self, name):
        table = EventDispatchTable()
        with pytest.raises(CexPlusReservedEventError):
            table.subscribe(name, lambda msg: None)
        with pytest.raises(ValueError):
            table.subscribe(name, lambda msg: None)


class TestInternal:
    def test_internal_handler_gets_event(self):
        table = EventDispatchTable()
        seen = []
        table.set_internal("connected", seen.append)
        event = _event("connected")
        assert table.dispatch(event) is True
        assert seen == [event]
        assert "connected" in table.names()

    def test_remove_internal(self):
        table = EventDispatchTable()
        table.set_internal("auth", lambda e: None)
        table.remove_internal("auth")
        assert table.dispatch(_event("auth")) is False

    def test_remove_internal_keeps_newer_handler(self):
        table = EventDispatchTable()
        old, new = MagicMock(), MagicMock()
        table.set_internal("auth", old)
        table.set_internal("auth", new)
        table.remove_internal("auth", old)
        assert table.dispatch(_event("auth")) is True
        new.assert_called_once()


class TestHandlerFailures:
    def test_handler_exception_is_contained(self):
        table = EventDispatchTable()

        def boom(msg):
            raise RuntimeError("boom")

        table.subscribe("balanceUpdate", boom)
        assert table.dispatch(_event("balanceUpdate")) is True

    @pytest.mark.asyncio
    async def test_async_handler_scheduled(self):
        table = EventDispatchTable()
        received = []

        async def handler(msg):
            received.append(msg)

        table.subscribe("tradeUpdate", handler)
        table.dispatch(_event("tradeUpdate", 1))
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        assert received == [{"e": "tradeUpdate", "data": 1}]

    @pytest.mark.asyncio
    async def test_cancel_tasks(self):
        table = EventDispatchTable()

        async def slow(msg):
            await asyncio.sleep(10)

        table.subscribe("tradeUpdate", slow)
        table.dispatch(_event("tradeUpdate"))
        assert len(table._background_tasks) == 1
        table.cancel_tasks()
        assert len(table._background_tasks) == 0
