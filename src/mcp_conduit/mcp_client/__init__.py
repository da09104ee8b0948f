"""
MCP Protocol Client Implementation.

This module provides the JSONRPC 2.0 client for interacting with MCP servers
over HTTP.
"""

from .base_client import BaseMCPClient, ConnectionState
from .exceptions import (
    ErrorKind,
    MCPAuthError,
    MCPClientError,
    MCPConnectionError,
    MCPProtocolError,
    MCPRemoteError,
    MCPServerError,
    MCPTimeoutError,
    MCPToolCallError,
    MCPTransportError,
)
from .http_client import HTTPMCPClient, HTTPTransport

__all__ = [
    "BaseMCPClient",
    "ConnectionState",
    "ErrorKind",
    "HTTPMCPClient",
    "HTTPTransport",
    "MCPAuthError",
    "MCPClientError",
    "MCPConnectionError",
    "MCPProtocolError",
    "MCPRemoteError",
    "MCPServerError",
    "MCPTimeoutError",
    "MCPToolCallError",
    "MCPTransportError",
]
