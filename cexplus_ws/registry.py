# =============================================================================
# CEX.IO Plus WebSocket Client -- Correlation Registry
# =============================================================================
#
# Pending calls keyed by correlation id (oid).  Every entry owns one future
# and one timeout handle; an entry leaves the registry only through
# resolve(), cancel_one() or cancel_all(), and its future is completed at
# most once.  Must only be touched from the event loop thread.
# =============================================================================

from __future__ import annotations

import asyncio
import itertools
import logging
import time
from typing import Any

from ._logging import logger
from .constants import REASON_CONNECTION_CLOSED, REASON_TIMEOUT, REPLY_OK
from .errors import (
    CexPlusConnectionClosedError,
    CexPlusRequestError,
    CexPlusTimeoutError,
)
from .types import PendingCall


class CorrelationRegistry:
    """Maps correlation ids to pending calls.

    Args:
        log: Log sink, defaults to the package logger.
    """

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logger
        self._pending: dict[str, PendingCall] = {}
        self._seq = itertools.count(1)

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, oid: object) -> bool:
        return oid in self._pending

    def pending_ids(self) -> list[str]:
        return list(self._pending)

    def new_id(self, method: str) -> str:
        """Generate ``<unix ms><seq>_<method>``, unique among pending calls."""
        while True:
            oid = f"{int(time.time() * 1000)}{next(self._seq)}_{method}"
            if oid not in self._pending:
                return oid

    # -- Lifecycle ------------------------------------------------------------

    def register(self, oid: str, deadline: float) -> asyncio.Future[Any]:
        """Track a new call and arm its timeout.

        Raises:
            ValueError: If *oid* is already pending.
        """
        if oid in self._pending:
            raise ValueError(f"Correlation id already pending: {oid}")

        loop = asyncio.get_running_loop()
        call = PendingCall(
            oid=oid,
            created_at=loop.time(),
            deadline=deadline,
            future=loop.create_future(),
        )
        call.timer = loop.call_later(deadline, self.cancel_one, oid, REASON_TIMEOUT)
        self._pending[oid] = call
        return call.future

    def resolve(self, oid: str, ok: str | None, payload: Any) -> bool:
        """Complete the call for *oid* with a server reply.

        Returns False (and does nothing else) when *oid* is not pending,
        e.g. a late reply after a timeout or a duplicate reply.
        """
        call = self._pending.pop(oid, None)
        if call is None:
            self._log.debug(
                "Reply for unknown oid %s dropped (pending: %s)",
                oid,
                list(self._pending),
            )
            return False

        self._disarm(call)
        if ok == REPLY_OK:
            self._settle(call, result=payload)
        else:
            error = payload.get("error") if isinstance(payload, dict) else payload
            self._settle(call, exc=CexPlusRequestError(oid, error, payload))
        return True

    def cancel_one(
        self,
        oid: str,
        reason: str = REASON_TIMEOUT,
        exc: BaseException | None = None,
    ) -> bool:
        """Reject a single call, by default with :class:`CexPlusTimeoutError`."""
        call = self._pending.pop(oid, None)
        if call is None:
            return False

        self._disarm(call)
        if exc is None:
            self._log.debug("Call %s cancelled: %s", oid, reason)
            exc = CexPlusTimeoutError(oid, reason)
        self._settle(call, exc=exc)
        return True

    def cancel_all(self, reason: str | None = None) -> int:
        """Reject every pending call with :class:`CexPlusConnectionClosedError`.

        Returns the number of calls cancelled.
        """
        if not self._pending:
            return 0

        calls = list(self._pending.values())
        self._pending.clear()
        reason = reason or REASON_CONNECTION_CLOSED
        for call in calls:
            self._disarm(call)
            self._settle(call, exc=CexPlusConnectionClosedError(reason, call.oid))
        self._log.debug("Cancelled %d pending calls: %s", len(calls), reason)
        return len(calls)

    # -- Internal -------------------------------------------------------------

    @staticmethod
    def _disarm(call: PendingCall) -> None:
        if call.timer is not None:
            call.timer.cancel()
            call.timer = None

    @staticmethod
    def _settle(
        call: PendingCall,
        *,
        result: Any = None,
        exc: BaseException | None = None,
    ) -> None:
        # Caller may have cancelled the awaiting task already.
        if call.future.done():
            return
        if exc is not None:
            call.future.set_exception(exc)
        else:
            call.future.set_result(result)
