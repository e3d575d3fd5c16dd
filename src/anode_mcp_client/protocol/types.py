"""MCP type definitions used by the client.

Field names use camelCase to match the wire format of the protocol.
Models allow extra fields so newer servers don't break decoding.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# Protocol version sent during the handshake
PROTOCOL_VERSION = "2024-11-05"


class McpModel(BaseModel):
    """Base model tolerant of fields added by newer servers."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)


# =============================================================================
# Initialize
# =============================================================================


class ClientInfo(McpModel):
    """Identity the client announces in the handshake."""

    name: str
    version: str


class ServerInfo(McpModel):
    """Identity the server returns from the handshake."""

    name: str
    version: str


class ListChangedCapability(McpModel):
    listChanged: bool | None = None


class ResourcesCapability(McpModel):
    subscribe: bool | None = None
    listChanged: bool | None = None


class ServerCapabilities(McpModel):
    """Capability flags advertised by the server."""

    tools: ListChangedCapability | None = None
    resources: ResourcesCapability | None = None
    prompts: ListChangedCapability | None = None


class InitializeParams(McpModel):
    """Parameters of the initialize request."""

    protocolVersion: str = PROTOCOL_VERSION
    capabilities: dict[str, Any] = Field(default_factory=dict)
    clientInfo: ClientInfo


class InitializeResult(McpModel):
    """Result of the initialize request."""

    protocolVersion: str
    serverInfo: ServerInfo
    capabilities: ServerCapabilities = Field(default_factory=ServerCapabilities)


# =============================================================================
# Tools
# =============================================================================


class ToolInfo(McpModel):
    """A tool advertised by tools/list."""

    name: str
    description: str = ""
    inputSchema: dict[str, Any] = Field(default_factory=dict)


class ListToolsResult(McpModel):
    tools: list[ToolInfo] = Field(default_factory=list)


class ContentItem(McpModel):
    """One entry of a tool result's content list."""

    type: str
    text: str | None = None
    data: str | None = None
    mimeType: str | None = None


# =============================================================================
# Resources
# =============================================================================


class ResourceInfo(McpModel):
    """A resource advertised by resources/list."""

    uri: str
    name: str
    mimeType: str | None = None


class ListResourcesResult(McpModel):
    resources: list[ResourceInfo] = Field(default_factory=list)


class ResourceContents(McpModel):
    uri: str
    text: str | None = None
    blob: str | None = None
    mimeType: str | None = None


class ReadResourceResult(McpModel):
    contents: list[ResourceContents] = Field(default_factory=list)
