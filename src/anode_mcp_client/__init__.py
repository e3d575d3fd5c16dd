"""Anode MCP client - drive an Android device over the Model Context Protocol.

Provides two transport modes:
- websocket: one persistent socket (default, port 8765)
- http-sse: server-push event stream + HTTP POST per request (port 8766)

Plus a mock transport for testing without real I/O, and a stdio bridge
for hosts that only launch stdio MCP servers.
"""

from .client import ConnectionState, McpClient, create_client
from .config import ClientConfig, TransportMode
from .correlator import RequestCorrelator
from .errors import (
    MalformedFrameError,
    McpClientError,
    NotConnectedError,
    ProtocolError,
    RequestTimeoutError,
    SessionError,
    TransportError,
)
from .events import ClientEvent, EventEmitter
from .protocol import (
    InitializeResult,
    JsonRpcNotification,
    ServerCapabilities,
    ServerInfo,
    ToolInfo,
)
from .router import NotificationRouter
from .tools import unwrap_tool_result
from .transport import (
    BaseClientTransport,
    ClientTransport,
    MockClientTransport,
    SSEClientTransport,
    WebSocketClientTransport,
    create_mock_transport,
    create_transport,
)

__version__ = "1.0.0"

__all__ = [
    # Client (recommended entry point)
    "McpClient",
    "ConnectionState",
    "create_client",
    "ClientConfig",
    "TransportMode",
    # Events
    "ClientEvent",
    "EventEmitter",
    # Engine parts
    "RequestCorrelator",
    "NotificationRouter",
    "unwrap_tool_result",
    # Transport Protocol & Base
    "ClientTransport",
    "BaseClientTransport",
    # Transport Implementations
    "WebSocketClientTransport",
    "SSEClientTransport",
    "MockClientTransport",
    "create_transport",
    "create_mock_transport",
    # Types
    "InitializeResult",
    "JsonRpcNotification",
    "ServerCapabilities",
    "ServerInfo",
    "ToolInfo",
    # Errors
    "McpClientError",
    "TransportError",
    "ProtocolError",
    "RequestTimeoutError",
    "SessionError",
    "NotConnectedError",
    "MalformedFrameError",
]
