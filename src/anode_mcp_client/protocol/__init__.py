"""Wire protocol layer.

JSON-RPC 2.0 envelopes plus the MCP result types the client decodes:
- Requests: client → server, carry an integer id for correlation
- Responses: server → client, carry the id of the request they answer
- Notifications: server → client, carry a method and no id
"""

from .jsonrpc import (
    InboundMessage,
    JsonRpcError,
    JsonRpcErrorCode,
    JsonRpcNotification,
    JsonRpcRequest,
    JsonRpcResponse,
    decode_frame,
)
from .types import (
    PROTOCOL_VERSION,
    ClientInfo,
    ContentItem,
    InitializeParams,
    InitializeResult,
    ListResourcesResult,
    ListToolsResult,
    ReadResourceResult,
    ResourceContents,
    ResourceInfo,
    ServerCapabilities,
    ServerInfo,
    ToolInfo,
)

__all__ = [
    # JSON-RPC
    "InboundMessage",
    "JsonRpcError",
    "JsonRpcErrorCode",
    "JsonRpcNotification",
    "JsonRpcRequest",
    "JsonRpcResponse",
    "decode_frame",
    # MCP types
    "PROTOCOL_VERSION",
    "ClientInfo",
    "ContentItem",
    "InitializeParams",
    "InitializeResult",
    "ListResourcesResult",
    "ListToolsResult",
    "ReadResourceResult",
    "ResourceContents",
    "ResourceInfo",
    "ServerCapabilities",
    "ServerInfo",
    "ToolInfo",
]
