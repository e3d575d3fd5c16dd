"""MCP session engine.

McpClient drives one connection to an Anode MCP server:
- opens the configured transport and performs the initialize handshake
- correlates requests with responses by id
- fans server notifications out to registered observers
- reconnects on a fixed interval after the transport drops

State machine:

    disconnected --connect()--> connecting --handshake ok--> connected
    connecting --open/handshake fails--> error
    connected --transport closed--> disconnected (+ reconnect if enabled)
    any --disconnect()--> disconnected

Usage:
    async with McpClient(ClientConfig(host="192.168.1.20")) as client:
        tools = await client.list_tools()
        result = await client.call_tool("device_get_screen_size")
        await client.gestures.tap(540, 1200)
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from enum import Enum
from typing import Any

from .config import ClientConfig
from .correlator import RequestCorrelator
from .errors import (
    MalformedFrameError,
    NotConnectedError,
    ProtocolError,
    RequestTimeoutError,
    SessionError,
    TransportError,
)
from .events import ClientEvent, EventEmitter, EventHandler
from .protocol import (
    ClientInfo,
    InitializeParams,
    InitializeResult,
    JsonRpcRequest,
    JsonRpcResponse,
    ListResourcesResult,
    ListToolsResult,
    ReadResourceResult,
    ResourceInfo,
    ServerCapabilities,
    ServerInfo,
    ToolInfo,
    decode_frame,
)
from .router import NotificationRouter
from .tools import (
    AppsAPI,
    DeviceAPI,
    FilesAPI,
    GesturesAPI,
    ImageAPI,
    LayoutAPI,
    UiAPI,
    unwrap_tool_result,
)
from .transport import ClientTransport, create_transport

logger = logging.getLogger(__name__)

TransportFactory = Callable[[ClientConfig], ClientTransport]


def _disconnected() -> SessionError:
    return SessionError("client disconnected")


class ConnectionState(str, Enum):
    """Session lifecycle state."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


class McpClient:
    """Client for an Anode MCP server.

    Every instance owns its own transport, pending-request table, event
    handlers and reconnect timer; instances never share state.
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        transport_factory: TransportFactory | None = None,
        **options: Any,
    ) -> None:
        """Initialize the client.

        Args:
            config: Full configuration. Alternatively pass ClientConfig
                fields as keyword options (``McpClient(host="...")``).
            transport_factory: Builds a fresh transport for each connect
                attempt (default: chosen from ``config.transport``)
        """
        if config is None:
            config = ClientConfig(**options)
        elif options:
            raise TypeError("Pass either a ClientConfig or keyword options, not both")

        self.config = config
        self._transport_factory = transport_factory or create_transport
        self._transport: ClientTransport | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._reconnect_task: asyncio.Task[None] | None = None
        self._state = ConnectionState.DISCONNECTED
        self._disconnect_requested = False

        self._correlator = RequestCorrelator()
        self._events = EventEmitter()
        self._router = NotificationRouter(self._correlator, self._events)

        self._server_info: ServerInfo | None = None
        self._capabilities: ServerCapabilities | None = None
        self._protocol_version: str | None = None

    # =========================================================================
    # State
    # =========================================================================

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == ConnectionState.CONNECTED

    @property
    def server(self) -> ServerInfo | None:
        """Server descriptor from the last successful handshake."""
        return self._server_info

    @property
    def capabilities(self) -> ServerCapabilities | None:
        """Server capability flags from the last successful handshake."""
        return self._capabilities

    @property
    def protocol_version(self) -> str | None:
        return self._protocol_version

    @property
    def pending_count(self) -> int:
        """Number of requests awaiting a response."""
        return len(self._correlator)

    @property
    def reconnect_scheduled(self) -> bool:
        return self._reconnect_task is not None and not self._reconnect_task.done()

    def _set_state(self, state: ConnectionState) -> None:
        if self._state != state:
            logger.debug(f"State {self._state.value} -> {state.value}")
            self._state = state
            self._events.emit(ClientEvent.STATE_CHANGE, state)

    # =========================================================================
    # Events
    # =========================================================================

    def on(self, event: ClientEvent | str, handler: EventHandler) -> Callable[[], None]:
        """Register an event handler. Returns an unsubscribe function."""
        return self._events.on(event, handler)

    def off(self, event: ClientEvent | str, handler: EventHandler) -> bool:
        """Remove one registration of an event handler."""
        return self._events.off(event, handler)

    # =========================================================================
    # Connection management
    # =========================================================================

    async def connect(self) -> InitializeResult:
        """Open the transport and perform the handshake.

        Raises:
            SessionError: If already connected or a connect is in progress
            TransportError: If the transport cannot be opened
            ProtocolError: If the server rejects the handshake
            RequestTimeoutError: If the handshake gets no answer in time
        """
        if self._state == ConnectionState.CONNECTED:
            raise SessionError("already connected")
        if self._state == ConnectionState.CONNECTING:
            raise SessionError("connection already in progress")

        self._stop_reconnect()
        self._disconnect_requested = False
        self._set_state(ConnectionState.CONNECTING)

        transport: ClientTransport | None = None
        try:
            transport = self._transport_factory(self.config)
            self._transport = transport
            await transport.open()
            if self._transport is not transport:
                # disconnect() ran while the channel was opening
                raise SessionError("client disconnected")
            self._reader_task = asyncio.create_task(self._read_loop(transport))

            result = await self._initialize()
            self._server_info = result.serverInfo
            self._capabilities = result.capabilities
            self._protocol_version = result.protocolVersion
        except Exception as e:
            if transport is not None and self._transport is not transport:
                await self._close_transport(transport)
            else:
                await self._teardown_transport()
            # disconnect() may have already moved us on while we were waiting
            if self._state == ConnectionState.CONNECTING:
                self._set_state(ConnectionState.ERROR)
                self._events.emit(ClientEvent.ERROR, e)
            logger.warning(f"Connect failed: {e}")
            raise

        self._set_state(ConnectionState.CONNECTED)
        logger.info(
            f"Connected to {result.serverInfo.name} {result.serverInfo.version} "
            f"(protocol {result.protocolVersion})"
        )
        self._events.emit(ClientEvent.CONNECT)
        return result

    async def disconnect(self) -> None:
        """Close the session on request. Cancels any pending reconnect."""
        self._disconnect_requested = True
        self._stop_reconnect()
        await self._teardown_transport()
        self._correlator.fail_all(_disconnected)
        self._set_state(ConnectionState.DISCONNECTED)
        self._events.emit(ClientEvent.DISCONNECT, "client initiated")

    async def _initialize(self) -> InitializeResult:
        params = InitializeParams(
            clientInfo=ClientInfo(
                name=self.config.client_name,
                version=self.config.client_version,
            )
        )
        result = await self.request("initialize", params.model_dump(exclude_none=True))
        return InitializeResult.model_validate(result)

    async def _teardown_transport(self) -> None:
        """Drop the current transport without reporting it as a peer closure."""
        transport, self._transport = self._transport, None
        reader, self._reader_task = self._reader_task, None

        if reader is not None and reader is not asyncio.current_task():
            reader.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await reader
        if transport is not None:
            await self._close_transport(transport)

    async def _close_transport(self, transport: ClientTransport) -> None:
        try:
            await transport.close()
        except Exception as e:
            logger.warning(f"Error closing transport: {e}")

    async def _read_loop(self, transport: ClientTransport) -> None:
        """Feed inbound frames to the router until the transport closes."""
        try:
            async for frame in transport.frames():
                self._router.dispatch(frame)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Read loop error: {e}")

        # Only a closure of the *current* transport is a disconnect
        if self._transport is transport:
            await self._handle_transport_closed(transport.close_reason or "connection closed")

    async def _handle_transport_closed(self, reason: str) -> None:
        # Settle everything before the first await so a concurrent
        # disconnect() sees a consistent session
        transport, self._transport = self._transport, None
        self._reader_task = None

        logger.info(f"Transport closed: {reason}")
        self._correlator.fail_all(_disconnected)
        self._set_state(ConnectionState.DISCONNECTED)
        self._events.emit(ClientEvent.DISCONNECT, reason)

        if self.config.auto_reconnect and not self._disconnect_requested:
            self._schedule_reconnect()

        if transport is not None:
            await self._close_transport(transport)

    # =========================================================================
    # Reconnection
    # =========================================================================

    def _schedule_reconnect(self) -> None:
        """Arm the reconnect timer. No-op if one is already pending."""
        if self.reconnect_scheduled:
            return
        logger.debug(f"Reconnecting in {self.config.reconnect_interval}s")
        self._reconnect_task = asyncio.create_task(self._reconnect_after_delay())

    def _stop_reconnect(self) -> None:
        task, self._reconnect_task = self._reconnect_task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def _reconnect_after_delay(self) -> None:
        await asyncio.sleep(self.config.reconnect_interval)
        self._reconnect_task = None
        try:
            await self.connect()
        except Exception as e:
            # Retry on the next interval until success or disconnect()
            logger.debug(f"Reconnect attempt failed: {e}")
            if self._should_retry():
                self._schedule_reconnect()

    def _should_retry(self) -> bool:
        if not self.config.auto_reconnect or self._disconnect_requested:
            return False
        # A manual connect() already owns the session
        return self._state not in (ConnectionState.CONNECTED, ConnectionState.CONNECTING)

    # =========================================================================
    # Request/response
    # =========================================================================

    async def request(self, method: str, params: dict[str, Any] | None = None) -> Any:
        """Send a JSON-RPC request and wait for its result.

        Raises:
            NotConnectedError: If no transport is open (never queued)
            ProtocolError: If the server answers with an error
            RequestTimeoutError: If no answer arrives within config.timeout
            SessionError: If the session disconnects while waiting
            TransportError: If the transport fails to deliver the request
        """
        transport = self._transport
        if transport is None or not transport.is_open:
            raise NotConnectedError()

        request_id = self._correlator.next_id()
        frame = JsonRpcRequest(id=request_id, method=method, params=params).to_frame()
        logger.debug(f"-> {method} (id={request_id})")

        if transport.inline_responses:
            return await self._request_inline(transport, frame)

        future = self._correlator.register(request_id, method, self.config.timeout)
        try:
            await transport.send(frame)
        except Exception:
            future.cancel()
            raise
        return await future

    async def _request_inline(self, transport: ClientTransport, frame: str) -> Any:
        """Round-trip where the transport hands back the answer directly."""
        try:
            body = await asyncio.wait_for(transport.send(frame), timeout=self.config.timeout)
        except TimeoutError as e:
            raise RequestTimeoutError() from e

        if not body:
            raise TransportError("Empty response from server")
        try:
            response = decode_frame(body)
        except MalformedFrameError as e:
            raise TransportError(f"Invalid response from server: {e}") from e
        if not isinstance(response, JsonRpcResponse):
            raise TransportError("Server answered with a notification instead of a response")

        if response.error is not None:
            raise ProtocolError(
                code=response.error.code,
                message=response.error.message,
                data=response.error.data,
            )
        return response.result

    # =========================================================================
    # MCP primitives
    # =========================================================================

    async def list_tools(self) -> list[ToolInfo]:
        """List tools the server exposes."""
        result = await self.request("tools/list")
        return ListToolsResult.model_validate(result or {}).tools

    async def call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> Any:
        """Call a remote tool and unwrap its result.

        Text content is decoded as JSON when possible, otherwise returned as
        the raw string; any other result is returned unmodified.
        """
        params: dict[str, Any] = {"name": name}
        if arguments is not None:
            params["arguments"] = arguments
        result = await self.request("tools/call", params)
        return unwrap_tool_result(result)

    async def list_resources(self) -> list[ResourceInfo]:
        """List resources the server exposes."""
        result = await self.request("resources/list")
        return ListResourcesResult.model_validate(result or {}).resources

    async def read_resource(self, uri: str) -> ReadResourceResult:
        """Read one resource by URI."""
        result = await self.request("resources/read", {"uri": uri})
        return ReadResourceResult.model_validate(result or {})

    async def ping(self) -> None:
        """Round-trip a ping to check liveness."""
        await self.request("ping")

    # =========================================================================
    # Device tool groups
    # =========================================================================

    @property
    def files(self) -> FilesAPI:
        """File operations on the device."""
        return FilesAPI(_client=self)

    @property
    def apps(self) -> AppsAPI:
        """Installed application operations."""
        return AppsAPI(_client=self)

    @property
    def ui(self) -> UiAPI:
        """Selector-based UI automation."""
        return UiAPI(_client=self)

    @property
    def gestures(self) -> GesturesAPI:
        """Coordinate-based gestures."""
        return GesturesAPI(_client=self)

    @property
    def layout(self) -> LayoutAPI:
        """Layout tree inspection."""
        return LayoutAPI(_client=self)

    @property
    def image(self) -> ImageAPI:
        """Screen capture and image search."""
        return ImageAPI(_client=self)

    @property
    def device(self) -> DeviceAPI:
        """Device information."""
        return DeviceAPI(_client=self)

    async def __aenter__(self) -> McpClient:
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.disconnect()


def create_client(config: ClientConfig | None = None, **options: Any) -> McpClient:
    """Create a client from a config or keyword options."""
    return McpClient(config, **options)
