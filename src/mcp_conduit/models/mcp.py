from typing import Any

from pydantic import AliasChoices, Field, PrivateAttr

from .common import BasePydanticModel

DEFAULT_ENDPOINT = "/rpc"


class MCPServiceRecord(BasePydanticModel):
    name: str # User-friendly name of the server, used in logs
    base_url: str # As supplied by the user; may carry the endpoint path
    endpoint: str = Field(default=DEFAULT_ENDPOINT, description="JSON-RPC endpoint path. Ignored in favour of a path in base_url when left at the default.")
    headers: dict[str, str] = Field(default_factory=dict, description="Extra HTTP headers sent with every request.")


class MCPTool(BasePydanticModel):
    """
    A tool advertised by an MCP server in its ``tools/list`` response.

    Unknown fields sent by the server are preserved. The owning client is kept as a
    back-reference so that a tool can be invoked directly.
    """
    name: str = Field(..., description="Name of the tool, unique within the MCP server.")
    description: str | None = Field(None, description="What the tool does.")
    input_schema: dict[str, Any] | None = Field(
        None,
        validation_alias=AliasChoices("inputSchema", "input_schema", "schema", "parameters"),
        description="JSON Schema for the tool's input parameters.",
    )
    annotations: dict[str, Any] | None = None

    model_config = {
        "extra": "allow",
        "populate_by_name": True,
    }

    _server: Any = PrivateAttr(default=None)

    @classmethod
    def from_json(cls, data: dict[str, Any], server: Any | None = None) -> "MCPTool":
        tool = cls.model_validate(data)
        tool._server = server
        return tool

    @property
    def server(self) -> Any:
        return self._server

    async def call(self, arguments: dict[str, Any] | None = None) -> Any:
        """Invokes this tool on the server it was listed from."""
        if self._server is None:
            raise RuntimeError(f"Tool '{self.name}' is not bound to an MCP client.")
        return await self._server.call_tool(self.name, arguments or {})
