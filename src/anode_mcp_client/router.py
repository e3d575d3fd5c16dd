"""Inbound frame routing.

Every decoded frame is either a response (has an id, goes to the
correlator) or a notification (has a method, goes to the notification
observers). Malformed frames are logged and dropped; they never reach a
caller and never end the session.
"""

from __future__ import annotations

import logging

from .correlator import RequestCorrelator
from .errors import MalformedFrameError
from .events import ClientEvent, EventEmitter
from .protocol import JsonRpcNotification, JsonRpcResponse, decode_frame

logger = logging.getLogger(__name__)


class NotificationRouter:
    """Routes inbound frames to the correlator or to event observers."""

    def __init__(self, correlator: RequestCorrelator, emitter: EventEmitter) -> None:
        self._correlator = correlator
        self._emitter = emitter

    def dispatch(self, frame: str | bytes) -> None:
        """Route one raw inbound frame."""
        try:
            message = decode_frame(frame)
        except MalformedFrameError as e:
            if isinstance(frame, bytes):
                frame = frame.decode("utf-8", "replace")
            preview = frame[:80]
            logger.warning(f"Dropping malformed frame: {e} (frame: {preview})")
            return

        if isinstance(message, JsonRpcResponse):
            self._correlator.settle(message)
        elif isinstance(message, JsonRpcNotification):
            logger.debug(f"Notification: {message.method}")
            self._emitter.emit(ClientEvent.NOTIFICATION, message)
