"""
JSONRPC 2.0 envelope construction and response parsing.
"""
import json
from typing import Any

from .exceptions import MCPProtocolError, MCPRemoteError

JSONRPC_VERSION = "2.0"


def build_request(method: str, params: dict[str, Any] | None = None, request_id: int | str | None = None) -> dict[str, Any]:
    """Generates a JSONRPC 2.0 request dictionary."""
    return {
        "jsonrpc": JSONRPC_VERSION,
        "id": request_id,
        "method": method,
        "params": params if params is not None else {},
    }


def build_notification(method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
    """Generates a JSONRPC 2.0 notification dictionary (no id, no response expected)."""
    return {
        "jsonrpc": JSONRPC_VERSION,
        "method": method,
        "params": params if params is not None else {},
    }


def encode(envelope: dict[str, Any]) -> str:
    return json.dumps(envelope, separators=(",", ":"))


def parse_response(raw_body: str | bytes, expected_id: int | str | None = None) -> Any:
    """
    Parses a JSONRPC response body and returns its ``result``.

    Args:
        raw_body: The HTTP response body.
        expected_id: Id of the originating request. A response that echoes a different
                     id is rejected; a response without an id is accepted.

    Raises:
        MCPProtocolError: If the body is not a JSON object or the id does not match.
        MCPRemoteError: If the response carries an ``error`` member.
    """
    try:
        data = json.loads(raw_body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise MCPProtocolError(f"Invalid JSON response from server: {e}") from e

    if not isinstance(data, dict):
        raise MCPProtocolError(f"Invalid JSON response from server: expected an object, got {type(data).__name__}")

    response_id = data.get("id")
    if expected_id is not None and response_id is not None and response_id != expected_id:
        raise MCPProtocolError(f"JSONRPC response ID mismatch. Expected {expected_id}, got {response_id}")

    if "error" in data and data["error"] is not None:
        err = data["error"]
        if isinstance(err, dict):
            raise MCPRemoteError(err.get("message", "Unknown MCP error"), code=err.get("code"), data=err.get("data"))
        raise MCPRemoteError(str(err))

    return data.get("result")
