"""
Pydantic models for MCP Conduit.
"""
from .common import BasePydanticModel
from .mcp import DEFAULT_ENDPOINT, MCPServiceRecord, MCPTool

__all__ = [
    "BasePydanticModel",
    "DEFAULT_ENDPOINT",
    "MCPServiceRecord",
    "MCPTool",
]
