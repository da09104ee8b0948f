"""
Custom exceptions for the MCP client.

Every error carries an ``ErrorKind`` tag in ``kind`` so that callers (and the
retry policy) can classify a failure without walking the class hierarchy.
"""
from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    CONNECTION = "connection"
    AUTHORIZATION = "authorization"
    SERVER = "server"
    REMOTE = "remote"
    TRANSPORT = "transport"
    PROTOCOL = "protocol"
    TIMEOUT = "timeout"
    TOOL_CALL = "tool_call"


class MCPClientError(Exception):
    """Base class for all MCP client errors."""
    kind: ErrorKind = ErrorKind.TRANSPORT


class MCPConnectionError(MCPClientError):
    """Raised when the server is unreachable, the connection drops, or the handshake fails."""
    kind = ErrorKind.CONNECTION


class MCPAuthError(MCPConnectionError):
    """Raised when the server rejects the request with HTTP 401 or 403."""
    kind = ErrorKind.AUTHORIZATION

    def __init__(self, status: int | str):
        super().__init__(f"Authorization failed: HTTP {status}")
        self.status = status


class MCPServerError(MCPClientError):
    """Raised when the server answers with an HTTP error status (other than 401/403)."""
    kind = ErrorKind.SERVER

    def __init__(self, message: str, status: int | None = None, reason: str = ""):
        super().__init__(message)
        self.status = status
        self.reason = reason


class MCPRemoteError(MCPClientError):
    """Raised for a JSONRPC ``error`` member in an otherwise successful HTTP response."""
    kind = ErrorKind.REMOTE

    def __init__(self, message: str, code: int | None = None, data: Any | None = None):
        super().__init__(message)
        self.code = code
        self.data = data


class MCPTransportError(MCPClientError):
    """Raised for transport-layer failures that are not connectivity problems."""
    kind = ErrorKind.TRANSPORT


class MCPProtocolError(MCPTransportError):
    """Raised for errors related to the JSONRPC protocol itself
    (e.g., malformed responses, unexpected message format)."""
    kind = ErrorKind.PROTOCOL


class MCPTimeoutError(MCPTransportError):
    """Raised when a connection or request times out."""
    kind = ErrorKind.TIMEOUT


class MCPToolCallError(MCPClientError):
    """Raised when listing or invoking tools fails for a reason not covered above."""
    kind = ErrorKind.TOOL_CALL

    def __init__(self, message: str, operation: str | None = None, tool_name: str | None = None):
        super().__init__(message)
        self.operation = operation
        self.tool_name = tool_name
