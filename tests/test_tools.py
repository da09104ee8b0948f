"""
Tests for tool listing, caching and invocation.
"""
import asyncio
import json

import pytest

from mcp_conduit.mcp_client.exceptions import (
    MCPConnectionError,
    MCPProtocolError,
    MCPRemoteError,
    MCPServerError,
    MCPToolCallError,
)
from mcp_conduit.models.mcp import MCPTool


async def test_list_tools_returns_tool_records(client, fake_server):
    tools = await client.list_tools()

    assert [tool.name for tool in tools] == ["echo", "add"]
    assert all(isinstance(tool, MCPTool) for tool in tools)
    assert tools[0].input_schema == {"type": "object"}
    assert tools[0].server is client
    assert fake_server.methods() == ["initialize", "tools/list"]
    assert fake_server.requests[-1]["params"] == {}


async def test_list_tools_is_cached(client, fake_server):
    first = await client.list_tools()
    second = await client.list_tools()

    assert second is first
    assert client.tools is first
    assert fake_server.methods().count("tools/list") == 1


async def test_cleanup_invalidates_tools_cache(client, fake_server):
    await client.list_tools()
    await client.cleanup()
    assert client.tools is None

    tools = await client.list_tools()

    assert len(tools) == 2
    assert fake_server.methods().count("tools/list") == 2
    assert fake_server.methods().count("initialize") == 2


async def test_list_tools_accepts_bare_list_result(client, fake_server):
    fake_server.results["tools/list"] = [{"name": "solo"}]

    tools = await client.list_tools()

    assert [tool.name for tool in tools] == ["solo"]


async def test_list_tools_accepts_bare_object_result(client, fake_server):
    fake_server.results["tools/list"] = {"name": "solo", "description": "only tool"}

    tools = await client.list_tools()

    assert len(tools) == 1
    assert tools[0].name == "solo"
    assert tools[0].description == "only tool"


async def test_list_tools_accepts_bare_empty_array(client, fake_server):
    fake_server.results["tools/list"] = []

    assert await client.list_tools() == []
    assert client.tools == []


@pytest.mark.parametrize("reconnect", [False, True])
async def test_cleanup_during_tools_list_does_not_cache_stale_tools(client, fake_server, reconnect):
    await client.connect()
    transport = client.transports[0]
    original_send = transport.send
    in_flight = asyncio.Event()
    release = asyncio.Event()

    async def gated_send(envelope):
        if envelope["method"] == "tools/list":
            in_flight.set()
            await release.wait()
        return await original_send(envelope)

    transport.send = gated_send

    task = asyncio.create_task(client.list_tools())
    await in_flight.wait()
    await client.cleanup()
    if reconnect:
        await client.connect()
    release.set()

    assert len(await task) == 2
    assert client.tools is None

    await client.list_tools()

    assert fake_server.methods().count("tools/list") == 2
    assert fake_server.methods().count("initialize") == 2


async def test_list_tools_empty_tools_array(client, fake_server):
    fake_server.results["tools/list"] = {"tools": []}

    assert await client.list_tools() == []


async def test_list_tools_without_payload_fails(client, fake_server):
    fake_server.results["tools/list"] = None

    with pytest.raises(MCPToolCallError, match="^Failed to get tools list from JSON-RPC request$"):
        await client.list_tools()


async def test_list_tools_wraps_invalid_tool_records(client, fake_server):
    fake_server.results["tools/list"] = {"tools": [{"description": "nameless"}]}

    with pytest.raises(MCPToolCallError, match="Error listing tools") as exc_info:
        await client.list_tools()

    assert exc_info.value.operation == "tools/list"
    assert client.tools is None


async def test_list_tools_wraps_remote_errors(client, fake_server):
    fake_server.bodies["tools/list"] = json.dumps({"error": {"code": -32601, "message": "Method not found"}})

    with pytest.raises(MCPToolCallError, match="Error listing tools: Method not found") as exc_info:
        await client.list_tools()

    assert isinstance(exc_info.value.__cause__, MCPRemoteError)


@pytest.mark.parametrize("error", [
    MCPServerError("Server error: HTTP 502 Bad Gateway", status=502),
    MCPProtocolError("Invalid JSON response from server: oops"),
])
async def test_list_tools_passes_through_classified_errors(client, fake_server, error):
    fake_server.failures["tools/list"] = [error]

    with pytest.raises(type(error)) as exc_info:
        await client.list_tools()

    assert exc_info.value is error


async def test_list_tools_connection_failure_surfaces_as_connection_error(client, fake_server):
    fake_server.failures["initialize"] = [MCPConnectionError("Server connection lost: refused")]

    with pytest.raises(MCPConnectionError, match="refused"):
        await client.list_tools()


async def test_call_tool_sends_name_and_arguments(client, fake_server):
    result = await client.call_tool("echo", {"text": "hi"})

    request = fake_server.requests[-1]
    assert request["method"] == "tools/call"
    assert request["params"] == {"name": "echo", "arguments": {"text": "hi"}}
    assert result == {"content": [{"type": "text", "text": json.dumps({"text": "hi"})}]}


async def test_call_tool_connects_implicitly(client, fake_server):
    await client.call_tool("echo", {})

    assert fake_server.methods() == ["initialize", "tools/call"]


async def test_call_tool_wraps_remote_error_naming_the_tool(client, fake_server):
    fake_server.bodies["tools/call"] = json.dumps({"error": {"code": -32602, "message": "Invalid params"}})

    with pytest.raises(MCPToolCallError, match="Error calling tool 'echo': Invalid params") as exc_info:
        await client.call_tool("echo", {"bad": True})

    assert exc_info.value.tool_name == "echo"
    assert isinstance(exc_info.value.__cause__, MCPRemoteError)


async def test_call_tool_wraps_server_error(client, fake_server):
    fake_server.failures["tools/call"] = [MCPServerError("Server error: HTTP 500", status=500)]

    with pytest.raises(MCPToolCallError, match="Error calling tool 'add'"):
        await client.call_tool("add", {"a": 1, "b": 2})


async def test_call_tool_wraps_unexpected_error_once(client, fake_server):
    fake_server.failures["tools/call"] = [RuntimeError("boom")]

    with pytest.raises(MCPToolCallError) as exc_info:
        await client.call_tool("echo", {})

    assert str(exc_info.value) == "Error executing request 'tools/call': boom"
    assert exc_info.value.tool_name == "echo"
    assert exc_info.value.operation == "tools/call"
    assert isinstance(exc_info.value.__cause__, RuntimeError)


async def test_call_tool_passes_through_connection_errors(client, fake_server):
    error = MCPConnectionError("Server connection lost: reset")
    fake_server.failures["tools/call"] = [MCPConnectionError("reset"), MCPConnectionError("reset"), error]

    with pytest.raises(MCPConnectionError) as exc_info:
        await client.call_tool("echo", {})

    assert exc_info.value is error


async def test_call_tool_passes_through_transport_errors(client, fake_server):
    fake_server.bodies["tools/call"] = "not json"

    with pytest.raises(MCPProtocolError):
        await client.call_tool("echo", {})


async def test_call_tool_streaming_yields_single_result(client, fake_server):
    stream = client.call_tool_streaming("echo", {"text": "once"})
    results = [item async for item in stream]

    assert len(results) == 1
    assert results[0]["content"][0]["text"] == json.dumps({"text": "once"})
    assert [item async for item in stream] == []
    assert fake_server.methods().count("tools/call") == 1


async def test_tool_record_calls_back_into_client(client, fake_server):
    tools = await client.list_tools()

    await tools[1].call({"a": 1, "b": 2})

    assert fake_server.requests[-1]["params"] == {"name": "add", "arguments": {"a": 1, "b": 2}}
