"""JSON-RPC 2.0 envelopes and inbound frame decoding.

Outbound requests are built with JsonRpcRequest. Inbound frames are decoded
into exactly one of JsonRpcResponse (carries an id) or JsonRpcNotification
(carries a method and no id). Anything else is a MalformedFrameError.
"""

from __future__ import annotations

import json
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, ValidationError

from ..errors import MalformedFrameError


class JsonRpcRequest(BaseModel):
    """JSON-RPC 2.0 request."""

    jsonrpc: Literal["2.0"] = "2.0"
    id: str | int
    method: str
    params: dict[str, Any] | None = None

    def to_frame(self) -> str:
        """Serialize for the wire, omitting absent params."""
        return self.model_dump_json(exclude_none=True)


class JsonRpcNotification(BaseModel):
    """JSON-RPC 2.0 notification (no response expected)."""

    model_config = ConfigDict(extra="allow")

    jsonrpc: str = "2.0"
    method: str
    params: dict[str, Any] | None = None


class JsonRpcError(BaseModel):
    """JSON-RPC 2.0 error object."""

    code: int
    message: str
    data: Any | None = None


class JsonRpcResponse(BaseModel):
    """JSON-RPC 2.0 response."""

    model_config = ConfigDict(extra="allow")

    jsonrpc: str = "2.0"
    id: str | int | None
    result: Any | None = None
    error: JsonRpcError | None = None

    @property
    def is_error(self) -> bool:
        return self.error is not None


# Standard JSON-RPC error codes
class JsonRpcErrorCode:
    """Standard JSON-RPC 2.0 error codes."""

    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603


InboundMessage = JsonRpcResponse | JsonRpcNotification


def decode_frame(data: str | bytes) -> InboundMessage:
    """Decode one inbound text frame.

    Raises:
        MalformedFrameError: not JSON, not an object, or neither a
            response nor a notification.
    """
    try:
        message = json.loads(data)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise MalformedFrameError(f"Invalid JSON: {e}") from e

    if not isinstance(message, dict):
        raise MalformedFrameError(f"Expected a JSON object, got {type(message).__name__}")

    try:
        if "id" in message:
            return JsonRpcResponse.model_validate(message)
        if "method" in message:
            return JsonRpcNotification.model_validate(message)
    except ValidationError as e:
        raise MalformedFrameError(f"Invalid envelope: {e}") from e

    raise MalformedFrameError("Frame has neither 'id' nor 'method'")
