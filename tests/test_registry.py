"""Tests for the correlation registry."""

import asyncio

import pytest

from cexplus_ws.errors import (
    CexPlusConnectionClosedError,
    CexPlusRequestError,
    CexPlusSendError,
    CexPlusTimeoutError,
)
from cexplus_ws.registry import CorrelationRegistry


class TestNewId:
    def test_format(self):
        reg = CorrelationRegistry()
        oid = reg.new_id("get_ticker")
        prefix, method = oid.split("_", 1)
        assert method == "get_ticker"
        assert prefix.isdigit()

    def test_unique(self):
        reg = CorrelationRegistry()
        ids = {reg.new_id("m") for _ in range(500)}
        assert len(ids) == 500


class TestRegister:
    @pytest.mark.asyncio
    async def test_register_tracks_call(self):
        reg = CorrelationRegistry()
        reg.register("1_a", 5.0)
        assert "1_a" in reg
        assert len(reg) == 1
        assert reg.pending_ids() == ["1_a"]
        reg.cancel_all()

    @pytest.mark.asyncio
    async def test_duplicate_id_rejected(self):
        reg = CorrelationRegistry()
        reg.register("1_a", 5.0)
        with pytest.raises(ValueError):
            reg.register("1_a", 5.0)
        assert len(reg) == 1
        reg.cancel_all()


class TestResolve:
    @pytest.mark.asyncio
    async def test_ok_reply_fulfills(self):
        reg = CorrelationRegistry()
        fut = reg.register("1_a", 5.0)
        assert reg.resolve("1_a", "ok", {"price": 100}) is True
        assert await fut == {"price": 100}
        assert len(reg) == 0

    @pytest.mark.asyncio
    async def test_error_reply_rejects(self):
        reg = CorrelationRegistry()
        fut = reg.register("1_a", 5.0)
        reg.resolve("1_a", "error", {"error": "Insufficient funds"})
        with pytest.raises(CexPlusRequestError) as info:
            await fut
        assert info.value.oid == "1_a"
        assert info.value.error == "Insufficient funds"
        assert info.value.data == {"error": "Insufficient funds"}

    @pytest.mark.asyncio
    async def test_unknown_id_is_noop(self):
        reg = CorrelationRegistry()
        fut = reg.register("1_a", 5.0)
        assert reg.resolve("2_b", "ok", {}) is False
        assert not fut.done()
        assert len(reg) == 1
        reg.cancel_all()

    @pytest.mark.asyncio
    async def test_duplicate_reply_dropped(self):
        reg = CorrelationRegistry()
        fut = reg.register("1_a", 5.0)
        reg.resolve("1_a", "ok", 1)
        assert reg.resolve("1_a", "ok", 2) is False
        assert await fut == 1

    @pytest.mark.asyncio
    async def test_resolve_disarms_timer(self):
        reg = CorrelationRegistry()
        fut = reg.register("1_a", 0.02)
        reg.resolve("1_a", "ok", "done")
        await asyncio.sleep(0.05)
        assert await fut == "done"

    @pytest.mark.asyncio
    async def test_cancelled_caller_does_not_break_resolve(self):
        reg = CorrelationRegistry()
        fut = reg.register("1_a", 5.0)
        fut.cancel()
        assert reg.resolve("1_a", "ok", {}) is True
        assert len(reg) == 0


class TestTimeout:
    @pytest.mark.asyncio
    async def test_deadline_rejects_with_timeout(self):
        reg = CorrelationRegistry()
        fut = reg.register("1_get_my_orders", 0.02)
        with pytest.raises(CexPlusTimeoutError) as info:
            await fut
        assert info.value.oid == "1_get_my_orders"
        assert info.value.reason == "request timeout"
        assert "1_get_my_orders" not in reg

    @pytest.mark.asyncio
    async def test_timeout_only_affects_its_own_call(self):
        reg = CorrelationRegistry()
        short = reg.register("1_a", 0.02)
        long = reg.register("2_b", 5.0)
        with pytest.raises(CexPlusTimeoutError):
            await short
        assert not long.done()
        assert reg.pending_ids() == ["2_b"]
        reg.cancel_all()

    @pytest.mark.asyncio
    async def test_late_reply_after_timeout_dropped(self):
        reg = CorrelationRegistry()
        fut = reg.register("1_a", 0.01)
        with pytest.raises(CexPlusTimeoutError):
            await fut
        assert reg.resolve("1_a", "ok", {}) is False


class TestCancelOne:
    @pytest.mark.asyncio
    async def test_custom_exception(self):
        reg = CorrelationRegistry()
        fut = reg.register("1_a", 5.0)
        assert reg.cancel_one("1_a", "send failed", exc=CexPlusSendError("1_a")) is True
        with pytest.raises(CexPlusSendError):
            await fut
        assert len(reg) == 0

    @pytest.mark.asyncio
    async def test_unknown_id(self):
        reg = CorrelationRegistry()
        assert reg.cancel_one("missing") is False


class TestCancelAll:
    @pytest.mark.asyncio
    async def test_rejects_every_call(self):
        reg = CorrelationRegistry()
        futs = [reg.register(f"{i}_m", 5.0) for i in range(3)]
        assert reg.cancel_all("socket closed") == 3
        assert len(reg) == 0
        for fut in futs:
            with pytest.raises(CexPlusConnectionClosedError) as info:
                await fut
            assert info.value.reason == "socket closed"

    @pytest.mark.asyncio
    async def test_empty_is_noop(self):
        reg = CorrelationRegistry()
        assert reg.cancel_all("whatever") == 0
        assert reg.cancel_all() == 0

    @pytest.mark.asyncio
    async def test_timers_cleared(self):
        reg = CorrelationRegistry()
        fut = reg.register("1_a", 0.02)
        reg.cancel_all()
        await asyncio.sleep(0.05)
        with pytest.raises(CexPlusConnectionClosedError):
            await fut

    @pytest.mark.asyncio
    async def test_reply_after_cancel_all_dropped(self):
        reg = CorrelationRegistry()
        fut = reg.register("1_a", 5.0)
        reg.cancel_all()
        assert reg.resolve("1_a", "ok", {}) is False
        with pytest.raises(CexPlusConnectionClosedError):
            await fut
