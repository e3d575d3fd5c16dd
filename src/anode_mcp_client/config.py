"""Client configuration.

ClientConfig carries every knob of the connection engine. Durations are
seconds (floats), the way asyncio and httpx take them.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum

DEFAULT_HOST = "192.168.1.100"
DEFAULT_WS_PORT = 8765
DEFAULT_HTTP_PORT = 8766

CLIENT_NAME = "anode-mcp-client"
CLIENT_VERSION = "1.0.0"


class TransportMode(str, Enum):
    """Which transport carries the session."""

    WEBSOCKET = "websocket"
    HTTP_SSE = "http-sse"


@dataclass
class ClientConfig:
    """Configuration for McpClient.

    Only ``host`` is required; everything else has the server's defaults.
    """

    host: str

    # Ports
    ws_port: int = DEFAULT_WS_PORT
    http_port: int = DEFAULT_HTTP_PORT

    transport: TransportMode = TransportMode.WEBSOCKET

    # Reconnection (fixed interval, unbounded attempts)
    auto_reconnect: bool = True
    reconnect_interval: float = 3.0

    # Per-request timeout
    timeout: float = 30.0

    # Identity sent during the handshake
    client_name: str = CLIENT_NAME
    client_version: str = CLIENT_VERSION

    def __post_init__(self) -> None:
        # Accept plain strings ("websocket", "http-sse") from callers and the CLI
        self.transport = TransportMode(self.transport)
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")
        if self.reconnect_interval < 0:
            raise ValueError("reconnect_interval must not be negative")

    @property
    def ws_url(self) -> str:
        return f"ws://{self.host}:{self.ws_port}"

    @property
    def http_base_url(self) -> str:
        return f"http://{self.host}:{self.http_port}"

    @property
    def events_url(self) -> str:
        """Server-push stream endpoint."""
        return f"{self.http_base_url}/mcp/events"

    @property
    def message_url(self) -> str:
        """Endpoint for outbound requests on the stream transport."""
        return f"{self.http_base_url}/mcp/message"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ClientConfig:
        """Build a config from ANODE_* (or legacy ACS_*) environment variables.

        ANODE_RECONNECT_INTERVAL is given in milliseconds.
        """
        env = os.environ if environ is None else environ

        host = env.get("ANODE_HOST") or env.get("ACS_HOST") or DEFAULT_HOST
        port = env.get("ANODE_PORT") or env.get("ACS_PORT") or str(DEFAULT_WS_PORT)
        interval_ms = env.get("ANODE_RECONNECT_INTERVAL") or "3000"

        return cls(
            host=host,
            ws_port=int(port),
            auto_reconnect=env.get("ANODE_RECONNECT") != "false",
            reconnect_interval=int(interval_ms) / 1000,
        )
