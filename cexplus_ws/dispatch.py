# =============================================================================
# CEX.IO Plus WebSocket Client -- Event Dispatch Table
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from ._logging import logger
from .constants import RESERVED_EVENTS
from .errors import CexPlusReservedEventError
from .types import NamedEvent

# Subscribers receive the whole decoded frame
EventCallback = Callable[[dict[str, Any]], Any]
AsyncEventCallback = Callable[[dict[str, Any]], Awaitable[Any]]

# Internal handlers receive the decoded NamedEvent
InternalHandler = Callable[[NamedEvent], None]


class EventDispatchTable:
    """One callback per event name, last registration wins.

    Reserved names (``connected``, ``disconnected``, ``auth``) belong to the
    session and cannot be subscribed to from user code.

    Args:
        log: Log sink, defaults to the package logger.
    """

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logger
        self._handlers: dict[str, EventCallback | AsyncEventCallback] = {}
        self._internal: dict[str, InternalHandler] = {}
        self._background_tasks: set[asyncio.Task[Any]] = set()

    # -- Registration ---------------------------------------------------------

    def subscribe(self, event: str, callback: EventCallback | AsyncEventCallback) -> None:
        """Register *callback* for *event*, replacing any earlier one."""
        if event in RESERVED_EVENTS:
            raise CexPlusReservedEventError(event)
        if event in self._handlers:
            self._log.debug("Replacing handler for '%s'", event)
        self._handlers[event] = callback

    def unsubscribe(self, event: str) -> bool:
        return self._handlers.pop(event, None) is not None

    def set_internal(self, event: str, handler: InternalHandler) -> None:
        self._internal[event] = handler

    def remove_internal(self, event: str, handler: InternalHandler | None = None) -> None:
        """Drop the internal handler for *event*, only if it is *handler* when given."""
        if handler is not None and self._internal.get(event) is not handler:
            return
        self._internal.pop(event, None)

    def handles(self, event: str) -> bool:
        return event in self._internal or event in self._handlers

    def names(self) -> set[str]:
        return set(self._handlers) | set(self._internal)

    # -- Dispatch -------------------------------------------------------------

    def dispatch(self, event: NamedEvent) -> bool:
        """Invoke the handlers registered for ``event.name``.

        Returns True if any handler was found.
        """
        internal = self._internal.get(event.name)
        callback = self._handlers.get(event.name)
        if internal is None and callback is None:
            return False

        if internal is not None:
            internal(event)
        if callback is not None:
            self._invoke(event, callback)
        return True

    def _invoke(
        self, event: NamedEvent, callback: EventCallback | AsyncEventCallback
    ) -> None:
        try:
            result = callback(event.message)
            if asyncio.iscoroutine(result):
                self._fire_task(result)
        except Exception as exc:
            self._log.error("Handler error for '%s': %s", event.name, exc)

    def _fire_task(self, coro: Any) -> None:
        """Schedule a coroutine with a strong reference to prevent GC."""
        task = asyncio.ensure_future(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task[Any]) -> None:
        self._background_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            self._log.error("Async handler error: %s", task.exception())

    def cancel_tasks(self) -> None:
        for task in self._background_tasks:
            task.cancel()
        self._background_tasks.clear()
