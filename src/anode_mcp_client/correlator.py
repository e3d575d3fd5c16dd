"""Request/response correlation.

RequestCorrelator owns the id counter and the table of in-flight requests.
Each entry is settled exactly once, by whichever comes first:
- a response with the matching id
- its deadline
- fail_all() on session teardown

Settlement pops the entry from the table in the same callback turn that
completes the future, so a handler can never observe a settled entry that
is still in the table.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from .errors import ProtocolError, RequestTimeoutError
from .protocol import JsonRpcResponse

logger = logging.getLogger(__name__)


@dataclass
class PendingRequest:
    """One outstanding round-trip."""

    id: int
    method: str
    future: asyncio.Future[Any]
    timer: asyncio.TimerHandle | None = None


class RequestCorrelator:
    """Allocates request ids and tracks pending requests keyed by id."""

    def __init__(self) -> None:
        self._last_id = 0
        self._pending: dict[int | str, PendingRequest] = {}

    @property
    def last_id(self) -> int:
        """Most recently allocated id (0 before the first request)."""
        return self._last_id

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, request_id: object) -> bool:
        return request_id in self._pending

    def next_id(self) -> int:
        """Allocate the next id. Ids start at 1 and are never reused."""
        self._last_id += 1
        return self._last_id

    def register(self, request_id: int, method: str, timeout: float) -> asyncio.Future[Any]:
        """Create a pending entry that fails after ``timeout`` seconds."""
        loop = asyncio.get_running_loop()
        future: asyncio.Future[Any] = loop.create_future()
        entry = PendingRequest(id=request_id, method=method, future=future)
        entry.timer = loop.call_later(timeout, self._expire, request_id)
        self._pending[request_id] = entry

        # A caller cancelling its wait must not leave the entry behind
        future.add_done_callback(lambda _: self._discard(request_id, entry))
        return future

    def settle(self, response: JsonRpcResponse) -> bool:
        """Complete the request matching ``response.id``.

        Returns:
            False if no request with that id is outstanding
        """
        if response.id is None:
            return False
        entry = self._pending.pop(response.id, None)
        if entry is None:
            logger.debug(f"Dropping response for unknown request: {response.id}")
            return False

        self._cancel_timer(entry)
        if entry.future.done():
            return False

        if response.error is not None:
            entry.future.set_exception(
                ProtocolError(
                    code=response.error.code,
                    message=response.error.message,
                    data=response.error.data,
                )
            )
        else:
            entry.future.set_result(response.result)
        return True

    def fail_all(self, make_error: Callable[[], BaseException]) -> int:
        """Fail every outstanding request and empty the table.

        ``make_error`` is called once per entry so each waiter gets its own
        exception instance.
        """
        entries = list(self._pending.values())
        self._pending.clear()
        for entry in entries:
            self._cancel_timer(entry)
            if not entry.future.done():
                entry.future.set_exception(make_error())
        if entries:
            logger.debug(f"Failed {len(entries)} pending request(s)")
        return len(entries)

    def _expire(self, request_id: int) -> None:
        entry = self._pending.pop(request_id, None)
        if entry is None:
            return
        entry.timer = None
        if not entry.future.done():
            logger.warning(f"Request {request_id} ({entry.method}) timed out")
            entry.future.set_exception(RequestTimeoutError())

    def _discard(self, request_id: int, entry: PendingRequest) -> None:
        if self._pending.get(request_id) is entry:
            del self._pending[request_id]
            self._cancel_timer(entry)

    @staticmethod
    def _cancel_timer(entry: PendingRequest) -> None:
        if entry.timer is not None:
            entry.timer.cancel()
            entry.timer = None
