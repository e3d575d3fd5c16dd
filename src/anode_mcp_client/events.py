"""Client lifecycle events.

A closed set of event kinds, each with its own ordered handler list:

    connect       ()                        handshake completed
    disconnect    (reason: str)             transport gone
    error         (error: Exception)        connect failed
    notification  (JsonRpcNotification)     server-initiated message
    state_change  (ConnectionState)         state machine moved

Dispatch is synchronous and follows registration order. A failing handler
is logged and skipped; the remaining handlers still run. Handlers that
return an awaitable are scheduled as tasks on the running loop.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class ClientEvent(str, Enum):
    """Every event kind a client can emit."""

    CONNECT = "connect"
    DISCONNECT = "disconnect"
    ERROR = "error"
    NOTIFICATION = "notification"
    STATE_CHANGE = "state_change"


EventHandler = Callable[..., Any]


class EventEmitter:
    """Per-instance event registry.

    Handlers are not deduplicated: registering the same callable twice
    makes it run twice per emit.
    """

    def __init__(self) -> None:
        self._handlers: dict[ClientEvent, list[EventHandler]] = {
            event: [] for event in ClientEvent
        }
        self._tasks: set[asyncio.Task[Any]] = set()

    def on(self, event: ClientEvent | str, handler: EventHandler) -> Callable[[], None]:
        """Register ``handler`` for ``event``.

        Returns:
            Function that removes this registration
        """
        kind = ClientEvent(event)
        self._handlers[kind].append(handler)

        def unsubscribe() -> None:
            self.off(kind, handler)

        return unsubscribe

    def off(self, event: ClientEvent | str, handler: EventHandler) -> bool:
        """Remove the first registration of ``handler``."""
        handlers = self._handlers[ClientEvent(event)]
        if handler in handlers:
            handlers.remove(handler)
            return True
        return False

    def handlers(self, event: ClientEvent | str) -> list[EventHandler]:
        """Snapshot of the handlers registered for ``event``."""
        return list(self._handlers[ClientEvent(event)])

    def emit(self, event: ClientEvent, *args: Any) -> None:
        """Invoke every handler for ``event`` in registration order."""
        # Copy so handlers can (un)register while we iterate
        for handler in list(self._handlers[event]):
            try:
                result = handler(*args)
                if inspect.isawaitable(result):
                    self._schedule(event, result)
            except Exception:
                logger.exception(f"Error in event handler for {event.value}")

    def _schedule(self, event: ClientEvent, awaitable: Any) -> None:
        task = asyncio.ensure_future(awaitable)
        self._tasks.add(task)

        def done(t: asyncio.Task[Any]) -> None:
            self._tasks.discard(t)
            if not t.cancelled() and t.exception() is not None:
                logger.error(
                    f"Error in async event handler for {event.value}",
                    exc_info=t.exception(),
                )

        task.add_done_callback(done)
