"""Unit tests for JSON-RPC envelopes and frame decoding."""

import json

import pytest

from anode_mcp_client.errors import MalformedFrameError
from anode_mcp_client.protocol import (
    PROTOCOL_VERSION,
    ClientInfo,
    InitializeParams,
    InitializeResult,
    JsonRpcNotification,
    JsonRpcRequest,
    JsonRpcResponse,
    decode_frame,
)


class TestJsonRpcRequest:
    """Test outbound request serialization."""

    def test_frame_without_params(self):
        """Absent params should be omitted from the wire."""
        frame = JsonRpcRequest(id=1, method="ping").to_frame()

        assert json.loads(frame) == {"jsonrpc": "2.0", "id": 1, "method": "ping"}

    def test_frame_with_params(self):
        frame = JsonRpcRequest(id=7, method="tools/call", params={"name": "x"}).to_frame()

        message = json.loads(frame)
        assert message["id"] == 7
        assert message["params"] == {"name": "x"}

    def test_initialize_params_shape(self):
        """Handshake params should carry version, capabilities and client info."""
        params = InitializeParams(clientInfo=ClientInfo(name="anode-mcp-client", version="1.0.0"))

        assert params.model_dump(exclude_none=True) == {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": {},
            "clientInfo": {"name": "anode-mcp-client", "version": "1.0.0"},
        }


class TestDecodeFrame:
    """Test inbound frame classification."""

    def test_result_response(self):
        message = decode_frame('{"jsonrpc": "2.0", "id": 3, "result": {"ok": true}}')

        assert isinstance(message, JsonRpcResponse)
        assert message.id == 3
        assert message.result == {"ok": True}
        assert message.is_error is False

    def test_error_response(self):
        message = decode_frame(
            '{"jsonrpc": "2.0", "id": 4, "error": {"code": -32601, "message": "nope"}}'
        )

        assert isinstance(message, JsonRpcResponse)
        assert message.is_error is True
        assert message.error.code == -32601
        assert message.error.message == "nope"

    def test_notification(self):
        message = decode_frame(
            '{"jsonrpc": "2.0", "method": "notifications/tools/list_changed"}'
        )

        assert isinstance(message, JsonRpcNotification)
        assert message.method == "notifications/tools/list_changed"
        assert message.params is None

    def test_bytes_frame(self):
        message = decode_frame(b'{"jsonrpc": "2.0", "method": "x", "params": {"a": 1}}')

        assert isinstance(message, JsonRpcNotification)
        assert message.params == {"a": 1}

    def test_id_wins_over_method(self):
        """A frame carrying an id is always treated as a response."""
        message = decode_frame('{"jsonrpc": "2.0", "id": 9, "method": "sampling/create"}')

        assert isinstance(message, JsonRpcResponse)
        assert message.id == 9

    @pytest.mark.parametrize(
        "frame",
        [
            "not json",
            "[1, 2, 3]",
            '"just a string"',
            '{"jsonrpc": "2.0"}',
            '{"jsonrpc": "2.0", "method": 42}',
            '{"jsonrpc": "2.0", "id": 1, "error": {"message": "missing code"}}',
        ],
    )
    def test_malformed(self, frame):
        with pytest.raises(MalformedFrameError):
            decode_frame(frame)

    def test_malformed_is_value_error(self):
        """Callers can treat malformed frames as plain ValueErrors."""
        with pytest.raises(ValueError):
            decode_frame("{")


class TestInitializeResult:
    """Test handshake result parsing."""

    def test_parses_server_descriptor(self):
        result = InitializeResult.model_validate(
            {
                "protocolVersion": "2024-11-05",
                "serverInfo": {"name": "anode", "version": "2.1.0"},
                "capabilities": {"tools": {"listChanged": True}, "experimental": {}},
            }
        )

        assert result.serverInfo.name == "anode"
        assert result.capabilities.tools.listChanged is True
        assert result.capabilities.resources is None
