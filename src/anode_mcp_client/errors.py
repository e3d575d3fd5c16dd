"""Exception types raised by the client.

Every error derives from McpClientError so embedders can catch the whole
family at once. Transport and timeout errors also subclass the matching
builtin (ConnectionError / TimeoutError) so generic handlers keep working.
"""

from __future__ import annotations

from typing import Any


class McpClientError(Exception):
    """Base class for all client errors."""


class TransportError(McpClientError, ConnectionError):
    """The underlying channel failed: refused, unreachable, non-2xx, stream loss."""


class ProtocolError(McpClientError):
    """The server answered with a JSON-RPC error envelope."""

    def __init__(
        self,
        code: int,
        message: str,
        data: Any | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data


class RequestTimeoutError(McpClientError, TimeoutError):
    """No response arrived within the configured window."""

    def __init__(self, message: str = "request timed out") -> None:
        super().__init__(message)


class SessionError(McpClientError):
    """A session precondition failed (already connected, disconnected, ...)."""


class NotConnectedError(SessionError):
    """A request was issued with no open transport."""

    def __init__(self, message: str = "not connected") -> None:
        super().__init__(message)


class MalformedFrameError(McpClientError, ValueError):
    """An inbound frame is neither a response nor a notification."""
