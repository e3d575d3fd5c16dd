"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

import pytest

from anode_mcp_client import ClientConfig, MockClientTransport

INITIALIZE_RESULT: dict[str, Any] = {
    "protocolVersion": "2024-11-05",
    "serverInfo": {"name": "anode-mcp-server", "version": "2.1.0"},
    "capabilities": {"tools": {"listChanged": True}},
}

TOOLS_LIST_RESULT: dict[str, Any] = {
    "tools": [
        {
            "name": "gesture_tap",
            "description": "Tap at coordinates",
            "inputSchema": {"type": "object", "properties": {"x": {}, "y": {}}},
        },
        {"name": "device_get_screen_size", "description": "Screen size"},
    ]
}


def make_device_responder(
    tool_results: dict[str, Any] | None = None,
    silent: set[str] | None = None,
) -> Callable[[dict[str, Any]], dict[str, Any] | None]:
    """Build a responder that answers like an Anode device.

    Args:
        tool_results: tools/call result envelope per tool name
        silent: methods that never get an answer
    """

    def respond(request: dict[str, Any]) -> dict[str, Any] | None:
        if "id" not in request:
            return None
        method = request["method"]
        if silent and method in silent:
            return None

        if method == "initialize":
            result: Any = INITIALIZE_RESULT
        elif method == "tools/list":
            result = TOOLS_LIST_RESULT
        elif method == "tools/call":
            name = request["params"]["name"]
            result = (tool_results or {}).get(name, {"content": []})
        else:
            result = {}
        return {"jsonrpc": "2.0", "id": request["id"], "result": result}

    return respond


class SlowMockTransport(MockClientTransport):
    """Mock whose open and close take a while, to interleave with disconnect()."""

    def __init__(
        self,
        *args: Any,
        open_delay: float = 0.0,
        close_delay: float = 0.0,
        **kwargs: Any,
    ) -> None:
        super().__init__(*args, **kwargs)
        self.open_delay = open_delay
        self.close_delay = close_delay

    async def _do_open(self) -> None:
        if self.open_delay:
            await asyncio.sleep(self.open_delay)
        await super()._do_open()

    async def _do_close(self) -> None:
        if self.close_delay:
            await asyncio.sleep(self.close_delay)
        await super()._do_close()


class TransportRecorder:
    """Transport factory that hands out a fresh mock per connect attempt."""

    def __init__(self) -> None:
        self.created: list[SlowMockTransport] = []
        self.responder = make_device_responder()
        self.inline = False
        self.fail_next: int = 0
        self.open_delay = 0.0
        self.close_delay = 0.0

    def __call__(self, config: ClientConfig) -> SlowMockTransport:
        fail = None
        if self.fail_next > 0:
            self.fail_next -= 1
            fail = ConnectionRefusedError("connection refused")
        transport = SlowMockTransport(
            config,
            responder=self.responder,
            inline=self.inline,
            fail_open=fail,
            open_delay=self.open_delay,
            close_delay=self.close_delay,
        )
        self.created.append(transport)
        return transport

    @property
    def last(self) -> SlowMockTransport:
        return self.created[-1]


@pytest.fixture
def transports() -> TransportRecorder:
    return TransportRecorder()


@pytest.fixture
def config() -> ClientConfig:
    return ClientConfig(host="device.test", reconnect_interval=0.01, timeout=1.0)


async def _wait_until(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    """Yield to the loop until ``predicate`` holds."""
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.001)


@pytest.fixture
def wait_until() -> Callable[..., Any]:
    return _wait_until


@pytest.fixture
def device_responder() -> Callable[..., Any]:
    return make_device_responder
