"""Client-side transport abstraction.

Lets the session engine run over a WebSocket or over SSE + HTTP POST
without changing session code. Also provides an in-memory transport for
testing.

Architecture:
- ClientTransport is the PROTOCOL (interface) for all transports
- Implementations handle the wire and connection management only
- McpClient owns exactly one transport at a time via a factory

Key difference between the two real variants:
- WebSocket: send() returns None, answers arrive through frames()
- HTTP/SSE: send() returns the POST response body, which IS the answer;
  frames() only carries server-pushed notifications

No transport reconnects on its own. That is the session's job.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Callable
from typing import Any, Protocol, runtime_checkable

import httpx

from .config import ClientConfig, TransportMode
from .errors import TransportError

logger = logging.getLogger(__name__)


@runtime_checkable
class ClientTransport(Protocol):
    """Protocol for client transports.

    All transports must implement:
    - open/close: Lifecycle management
    - send: Transmit one text frame
    - frames: Push-based stream of inbound text frames
    """

    @property
    def is_open(self) -> bool:
        """Check if the channel can carry messages."""
        ...

    @property
    def close_reason(self) -> str:
        """Why the inbound stream ended (empty while open)."""
        ...

    @property
    def inline_responses(self) -> bool:
        """True when send() returns the answer instead of frames() carrying it."""
        ...

    async def open(self) -> None:
        """Open the channel.

        Raises:
            TransportError: If the peer refuses, is unreachable, or the
                connect fails at protocol level
        """
        ...

    async def send(self, frame: str) -> str | None:
        """Send one text frame.

        Returns:
            None when the answer arrives through frames(), otherwise the
            answer frame itself.

        Raises:
            TransportError: If the channel is closed or the send fails
        """
        ...

    def frames(self) -> AsyncIterator[str]:
        """Yield inbound text frames until the channel closes."""
        ...

    async def close(self) -> None:
        """Close the channel. Idempotent, safe when never opened."""
        ...


class BaseClientTransport(ABC):
    """Base class for client transports with common functionality.

    Provides:
    - Open/closed bookkeeping
    - Close reason tracking
    - Idempotent close
    """

    def __init__(self, config: ClientConfig):
        self.config = config
        self._open = False
        self._close_reason = ""

    @property
    def is_open(self) -> bool:
        """Check if the channel can carry messages."""
        return self._open

    @property
    def close_reason(self) -> str:
        return self._close_reason

    @property
    def inline_responses(self) -> bool:
        return False

    async def open(self) -> None:
        """Open the channel."""
        if self._open:
            return
        self._close_reason = ""
        try:
            await self._do_open()
        except TransportError:
            raise
        except Exception as e:
            raise TransportError(f"Failed to connect: {e}") from e
        self._open = True
        logger.info(f"{self.__class__.__name__} opened")

    async def close(self) -> None:
        """Close the channel.

        Runs even after the peer ended the stream so that sockets and HTTP
        clients are always released; _do_close must be idempotent.
        """
        was_open = self._open
        self._open = False
        if not self._close_reason:
            self._close_reason = "client closed"
        await self._do_close()
        if was_open:
            logger.info(f"{self.__class__.__name__} closed")

    async def send(self, frame: str) -> str | None:
        """Send one frame."""
        if not self._open:
            raise TransportError("Transport not open")
        return await self._do_send(frame)

    def _mark_closed(self, reason: str) -> None:
        """Record that the peer (or the network) ended the channel."""
        if not self._close_reason:
            self._close_reason = reason
        self._open = False

    # Abstract methods for subclasses
    @abstractmethod
    async def _do_open(self) -> None:
        """Implementation-specific connect logic."""
        ...

    @abstractmethod
    async def _do_close(self) -> None:
        """Implementation-specific disconnect logic."""
        ...

    @abstractmethod
    async def _do_send(self, frame: str) -> str | None:
        """Implementation-specific send logic."""
        ...

    @abstractmethod
    def frames(self) -> AsyncIterator[str]:
        """Implementation-specific receive logic. Must be an async generator."""
        ...

    async def __aenter__(self) -> BaseClientTransport:
        await self.open()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()


class WebSocketClientTransport(BaseClientTransport):
    """Transport over one long-lived WebSocket.

    Connects to ws://<host>:<ws_port>. Every JSON-RPC envelope travels as
    one text frame in each direction.
    """

    def __init__(self, config: ClientConfig, url: str | None = None):
        super().__init__(config)
        self.url = url or config.ws_url
        self._ws: Any = None  # websockets ClientConnection

    async def _do_open(self) -> None:
        """Connect to the WebSocket server."""
        try:
            import websockets
        except ImportError as e:
            raise ImportError(
                "websockets package required. Install with: pip install websockets"
            ) from e

        logger.debug(f"Connecting to {self.url}")
        try:
            self._ws = await websockets.connect(
                self.url,
                open_timeout=self.config.timeout,
                ping_interval=30,
                ping_timeout=10,
            )
        except Exception as e:
            raise TransportError(f"Failed to connect to {self.url}: {e}") from e

    async def _do_close(self) -> None:
        """Close the WebSocket connection."""
        if self._ws:
            ws, self._ws = self._ws, None
            with contextlib.suppress(Exception):
                await ws.close(code=1000, reason="Client disconnect")

    async def _do_send(self, frame: str) -> None:
        """Send one text frame."""
        if not self._ws:
            raise TransportError("WebSocket not connected")
        try:
            await self._ws.send(frame)
        except Exception as e:
            raise TransportError(f"WebSocket send failed: {e}") from e
        return None

    async def frames(self) -> AsyncIterator[str]:
        """Receive frames until either side closes."""
        ws = self._ws
        if ws is None:
            raise TransportError("WebSocket not connected")

        try:
            async for data in ws:
                if isinstance(data, bytes):
                    data = data.decode("utf-8", errors="replace")
                yield data
        except Exception as e:
            # ConnectionClosedError lands here on abnormal closure
            logger.debug(f"WebSocket receive ended: {e}")
        finally:
            self._mark_closed(self._describe_close(ws))

    @staticmethod
    def _describe_close(ws: Any) -> str:
        reason = getattr(ws, "close_reason", None)
        if reason:
            return str(reason)
        code = getattr(ws, "close_code", None)
        if code is not None:
            return f"connection closed (code {code})"
        return "connection closed"


class SSEClientTransport(BaseClientTransport):
    """Transport over HTTP POST + Server-Sent Events.

    - GET /mcp/events: one-way push channel; SSE events named "message"
      carry JSON-RPC frames, "connected" is a greeting and is ignored
    - POST /mcp/message: one request per call; the HTTP response body is
      the JSON-RPC response to that request
    """

    def __init__(
        self,
        config: ClientConfig,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(config)
        self._http_transport = http_transport
        self._http_client: httpx.AsyncClient | None = None
        self._event_source: Any = None  # httpx_sse.EventSource
        self._stack: contextlib.AsyncExitStack | None = None

    @property
    def inline_responses(self) -> bool:
        return True

    async def _do_open(self) -> None:
        """Open the event stream and wait for the server to accept it."""
        from httpx_sse import aconnect_sse

        stack = contextlib.AsyncExitStack()
        try:
            client = await stack.enter_async_context(
                httpx.AsyncClient(
                    timeout=httpx.Timeout(self.config.timeout, read=None),
                    transport=self._http_transport,
                )
            )
            event_source = await stack.enter_async_context(
                aconnect_sse(client, "GET", self.config.events_url)
            )
            event_source.response.raise_for_status()
        except Exception as e:
            await stack.aclose()
            raise TransportError(f"SSE connection failed: {e}") from e

        self._stack = stack
        self._http_client = client
        self._event_source = event_source
        logger.debug(f"SSE connection established: {self.config.events_url}")

    async def _do_close(self) -> None:
        """Close the event stream and the HTTP client."""
        stack, self._stack = self._stack, None
        self._http_client = None
        self._event_source = None
        if stack:
            await stack.aclose()

    async def _do_send(self, frame: str) -> str:
        """POST one request; its response body is the answer."""
        if not self._http_client:
            raise TransportError("HTTP client not connected")

        try:
            response = await self._http_client.post(
                self.config.message_url,
                content=frame.encode("utf-8"),
                headers={"Content-Type": "application/json"},
            )
        except httpx.HTTPError as e:
            raise TransportError(f"HTTP request failed: {e}") from e

        if not response.is_success:
            raise TransportError(f"HTTP error: {response.status_code}")
        return response.text

    async def frames(self) -> AsyncIterator[str]:
        """Yield pushed frames until the stream ends."""
        event_source = self._event_source
        if event_source is None:
            raise TransportError("SSE stream not connected")

        reason = "event stream closed"
        try:
            async for sse in event_source.aiter_sse():
                if sse.event == "message":
                    yield sse.data
                elif sse.event == "connected":
                    logger.debug("SSE stream greeted by server")
                else:
                    logger.debug(f"Ignoring SSE event: {sse.event}")
        except Exception as e:
            reason = f"event stream failed: {e}"
            logger.warning(f"SSE receive error: {e}")
        finally:
            self._mark_closed(reason)


# Sentinel placed on the mock inbound queue to end frames()
_CLOSE = object()

Responder = Callable[[dict[str, Any]], dict[str, Any] | None]


class MockClientTransport(BaseClientTransport):
    """In-memory transport for testing.

    Records sent frames, lets tests inject inbound frames and simulate
    closure by the peer. No actual I/O.

    Usage:
        transport = MockClientTransport(responder=lambda req: {...})
        client = McpClient(config, transport_factory=lambda _: transport)
        await client.connect()

        transport.inject({"jsonrpc": "2.0", "method": "notifications/x"})
        transport.drop("server restarting")

    With ``inline=True`` the responder's answer is returned from send()
    instead of being pushed through frames(), like the HTTP/SSE variant.
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        responder: Responder | None = None,
        inline: bool = False,
        fail_open: Exception | None = None,
    ) -> None:
        super().__init__(config or ClientConfig(host="mock"))
        self.responder = responder
        self.inline = inline
        self.fail_open = fail_open
        self.open_count = 0
        self.close_count = 0
        self._sent: list[str] = []
        self._inbound: asyncio.Queue[Any] = asyncio.Queue()

    @property
    def inline_responses(self) -> bool:
        return self.inline

    @property
    def sent(self) -> list[str]:
        """Raw frames sent through this transport."""
        return self._sent.copy()

    @property
    def sent_messages(self) -> list[dict[str, Any]]:
        """Sent frames decoded as JSON."""
        return [json.loads(frame) for frame in self._sent]

    def inject(self, message: dict[str, Any] | str) -> None:
        """Deliver an inbound frame as if the peer had sent it."""
        frame = message if isinstance(message, str) else json.dumps(message)
        self._inbound.put_nowait(frame)

    def drop(self, reason: str = "connection lost") -> None:
        """Simulate the peer closing the channel."""
        self._inbound.put_nowait((_CLOSE, reason))

    async def _do_open(self) -> None:
        self.open_count += 1
        if self.fail_open is not None:
            raise TransportError(str(self.fail_open))
        self._inbound = asyncio.Queue()

    async def _do_close(self) -> None:
        self.close_count += 1
        self._inbound.put_nowait((_CLOSE, self._close_reason))

    async def _do_send(self, frame: str) -> str | None:
        self._sent.append(frame)
        if self.responder is None:
            return None

        reply = self.responder(json.loads(frame))
        if reply is None:
            return None
        if self.inline:
            return json.dumps(reply)
        self.inject(reply)
        return None

    async def frames(self) -> AsyncIterator[str]:
        queue = self._inbound
        while True:
            item = await queue.get()
            if isinstance(item, tuple) and item and item[0] is _CLOSE:
                self._mark_closed(item[1] or "connection closed")
                return
            yield item


# Factory functions


def create_transport(config: ClientConfig) -> BaseClientTransport:
    """Create the transport selected by ``config.transport``."""
    if config.transport == TransportMode.HTTP_SSE:
        return SSEClientTransport(config)
    return WebSocketClientTransport(config)


def create_mock_transport(
    responder: Responder | None = None,
    inline: bool = False,
) -> MockClientTransport:
    """Create a mock transport for testing.

    Returns:
        MockClientTransport for testing
    """
    return MockClientTransport(responder=responder, inline=inline)
