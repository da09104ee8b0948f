"""
Shared fixtures: an in-memory MCP server behind a fake transport, so lifecycle and
tool tests can run without aiohttp.
"""
import asyncio
import json
from typing import Any

import pytest

from mcp_conduit.config import Config, MCPClientConfig
from mcp_conduit.mcp_client.base_client import BaseMCPClient
from mcp_conduit.mcp_client.http_client import HTTPResponse


class FakeServer:
    """Answers JSON-RPC envelopes. Queue exceptions in ``failures[method]`` or raw
    bodies in ``bodies[method]`` to script misbehaviour."""

    def __init__(self, tools: list[dict[str, Any]] | None = None):
        self.tools = tools if tools is not None else [
            {"name": "echo", "description": "Echo the arguments", "inputSchema": {"type": "object"}},
            {"name": "add", "description": "Add two numbers"},
        ]
        self.requests: list[dict[str, Any]] = []
        self.failures: dict[str, list[Exception]] = {}
        self.bodies: dict[str, str] = {}
        self.results: dict[str, Any] = {}

    def __call__(self, envelope: dict[str, Any]) -> str:
        self.requests.append(envelope)
        method = envelope["method"]

        queued = self.failures.get(method)
        if queued:
            raise queued.pop(0)
        if method in self.bodies:
            return self.bodies[method]
        if "id" not in envelope:
            return ""

        if method in self.results:
            result = self.results[method]
        elif method == "initialize":
            result = {"serverInfo": {"name": "fake-server", "version": "1.0"}, "capabilities": {"tools": {}}}
        elif method == "tools/list":
            result = {"tools": self.tools}
        elif method == "tools/call":
            result = {"content": [{"type": "text", "text": json.dumps(envelope["params"]["arguments"])}]}
        else:
            result = {}
        return json.dumps({"jsonrpc": "2.0", "id": envelope["id"], "result": result})

    def methods(self) -> list[str]:
        return [request["method"] for request in self.requests]


class FakeTransport:
    def __init__(self, server: FakeServer):
        self.server = server
        self.opened = 0
        self.closed = 0
        self.close_error: Exception | None = None

    async def open(self) -> None:
        self.opened += 1

    async def send(self, envelope: dict[str, Any]) -> HTTPResponse:
        await asyncio.sleep(0) # let concurrent tasks interleave like real I/O
        return HTTPResponse(status=200, body=self.server(envelope))

    async def close(self) -> None:
        self.closed += 1
        if self.close_error:
            raise self.close_error


class FakeMCPClient(BaseMCPClient):
    def __init__(self, server: FakeServer, config: Config):
        super().__init__("fake", config)
        self.server = server
        self.transports: list[FakeTransport] = []

    @property
    def base_url(self) -> str:
        return "http://fake.example.com"

    def _create_transport(self) -> FakeTransport:
        transport = FakeTransport(self.server)
        self.transports.append(transport)
        return transport


@pytest.fixture
def app_config():
    return Config(mcp_client=MCPClientConfig(max_attempts=3, retry_backoff_seconds=0.0))


@pytest.fixture
def fake_server():
    return FakeServer()


@pytest.fixture
def client(fake_server, app_config):
    return FakeMCPClient(fake_server, app_config)
