"""MCP Conduit - HTTP JSON-RPC client for calling tools on remote MCP servers.

Connects to a server, performs the initialize handshake, discovers the tools it
offers and invokes them with bounded retries and classified errors.
"""

__version__ = "0.1.0"

from .config import Config
from .mcp_client import HTTPMCPClient, MCPClientError
from .models import MCPServiceRecord, MCPTool

__all__ = ["Config", "HTTPMCPClient", "MCPClientError", "MCPServiceRecord", "MCPTool"]
