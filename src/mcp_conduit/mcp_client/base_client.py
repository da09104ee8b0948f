"""
Base MCP Client Abstract Class.

Owns the connection lifecycle (``DISCONNECTED -> CONNECTING -> INITIALIZED``), the
request id counter and the tools cache, all guarded by a single ``asyncio.Lock``.
The lock only ever covers in-memory reads and writes; network calls and backoff
sleeps happen outside it.
"""
import abc
import asyncio
from collections.abc import AsyncGenerator
from enum import Enum
from typing import Any, Protocol

import structlog

from .. import __version__
from ..config import Config, MCPClientConfig
from ..models.mcp import MCPTool
from ..utils.resilience import with_retry
from .exceptions import (
    ErrorKind,
    MCPClientError,
    MCPConnectionError,
    MCPServerError,
    MCPToolCallError,
    MCPTransportError,
)
from .jsonrpc import build_notification, build_request, parse_response

RETRYABLE_KINDS: frozenset[ErrorKind] = frozenset({ErrorKind.CONNECTION})


class ConnectionState(Enum):
    DISCONNECTED = "DISCONNECTED"
    CONNECTING = "CONNECTING"
    INITIALIZED = "INITIALIZED"


_TRANSITIONS: dict[ConnectionState, frozenset[ConnectionState]] = {
    ConnectionState.DISCONNECTED: frozenset({ConnectionState.CONNECTING}),
    ConnectionState.CONNECTING: frozenset({ConnectionState.INITIALIZED, ConnectionState.DISCONNECTED}),
    ConnectionState.INITIALIZED: frozenset({ConnectionState.DISCONNECTED}),
}


class MCPTransport(Protocol):
    """What the lifecycle needs from a transport: open, send one envelope, close."""

    async def open(self) -> None: ...

    async def send(self, envelope: dict[str, Any]) -> Any: ...

    async def close(self) -> None: ...


class BaseMCPClient(abc.ABC):
    """
    Abstract Base Class for an MCP (Model Context Protocol) client.
    Implements the handshake, reconnect and tool operations on top of a transport
    supplied by the concrete subclass via ``_create_transport``.
    """

    def __init__(self, name: str, config: Config):
        self.name = name
        self.config = config
        self.mcp_client_config: MCPClientConfig = config.mcp_client

        self._lock = asyncio.Lock()
        # Serializes handshakes in connect() and ensure_connected(). Unlike _lock it is
        # held across the handshake, and it guards no fields.
        self._handshake_lock = asyncio.Lock()
        self._state = ConnectionState.DISCONNECTED
        # Bumped by every cleanup(); results fetched on an older connection are not cached.
        self._connection_generation = 0
        self._request_id = 0
        self._transport: MCPTransport | None = None
        self._server_info: dict[str, Any] | None = None
        self._capabilities: dict[str, Any] | None = None
        self._tools_data: list[Any] | None = None
        self._tools: list[MCPTool] | None = None

        self.logger = structlog.get_logger(__name__).bind(server_name=name)

    @property
    @abc.abstractmethod
    def base_url(self) -> str:
        """Server URL used in connection error messages."""

    @abc.abstractmethod
    def _create_transport(self) -> MCPTransport:
        """Creates the transport object. Must not perform network I/O."""

    # --- Lifecycle state -------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def connection_established(self) -> bool:
        return self._state is ConnectionState.INITIALIZED

    @property
    def initialized(self) -> bool:
        return self._state is ConnectionState.INITIALIZED

    @property
    def server_info(self) -> dict[str, Any] | None:
        return self._server_info

    @property
    def capabilities(self) -> dict[str, Any] | None:
        return self._capabilities

    @property
    def tools(self) -> list[MCPTool] | None:
        """Cached tools, or None if they have not been fetched since the last cleanup."""
        return self._tools

    async def is_connected(self) -> bool:
        async with self._lock:
            return self._state is ConnectionState.INITIALIZED

    def _transition(self, target: ConnectionState) -> None:
        # Caller holds self._lock.
        if target is self._state:
            return
        if target not in _TRANSITIONS[self._state]:
            raise MCPConnectionError(f"Invalid connection state transition {self._state.value} -> {target.value}")
        self.logger.debug("Connection state transition.", from_state=self._state.value, to_state=target.value)
        self._state = target

    async def _next_request_id(self) -> int:
        async with self._lock:
            self._request_id += 1
            return self._request_id

    # --- Lifecycle operations ---------------------------------------------

    async def connect(self) -> bool:
        """
        Connects to the MCP server and performs the initialize handshake.
        Returns True immediately if already initialized.
        Raises:
            MCPConnectionError: if the probe or the handshake fails. The client is
                                cleaned up before the error propagates.
        """
        async with self._handshake_lock:
            return await self._connect()

    async def _connect(self) -> bool:
        # Caller holds self._handshake_lock.
        async with self._lock:
            if self._state is ConnectionState.INITIALIZED:
                return True
            self._transition(ConnectionState.CONNECTING)

        try:
            await self._test_connection()
            await self._perform_initialize()
            async with self._lock:
                self._transition(ConnectionState.INITIALIZED)
        except MCPConnectionError as e:
            self.logger.warning("Connection attempt failed.", error=str(e))
            await self.cleanup()
            raise
        except Exception as e:
            self.logger.warning("Connection attempt failed.", error_type=type(e).__name__, error=str(e))
            await self.cleanup()
            raise MCPConnectionError(f"Failed to connect to MCP server at {self.base_url}: {e}") from e

        self.logger.info("Connected to MCP server.", base_url=self.base_url, server_info=self._server_info)
        return True

    async def ensure_connected(self) -> None:
        """Returns without I/O when initialized; otherwise discards stale state and reconnects."""
        async with self._lock:
            if self._state is ConnectionState.INITIALIZED:
                return
        async with self._handshake_lock:
            # Another task may have finished the handshake while this one waited.
            async with self._lock:
                if self._state is ConnectionState.INITIALIZED:
                    return
            self.logger.debug("Connection not active, attempting to reconnect before request.")
            await self.cleanup()
            await self._connect()

    async def cleanup(self) -> None:
        """
        Drops the connection and clears cached server data. Idempotent and never raises.
        """
        async with self._lock:
            self._transition(ConnectionState.DISCONNECTED)
            self._connection_generation += 1
            transport, self._transport = self._transport, None
            self._server_info = None
            self._capabilities = None
            self._tools = None
            self._tools_data = None

        if transport is None:
            return
        self.logger.debug("Closing transport.")
        try:
            await transport.close()
        except Exception as e:
            self.logger.warning("Error while closing transport during cleanup.", error_type=type(e).__name__, error=str(e))

    async def _test_connection(self) -> None:
        """Creates the transport lazily. No handshake traffic is sent here."""
        async with self._lock:
            if self._transport is None:
                self._transport = self._create_transport()
            transport = self._transport
        try:
            await transport.open()
        except MCPConnectionError:
            raise
        except Exception as e:
            raise MCPConnectionError(f"Cannot connect to server at {self.base_url}: {e}") from e

    def _initialization_params(self) -> dict[str, Any]:
        return {
            "protocolVersion": self.config.protocol_version,
            "capabilities": {},
            "clientInfo": {"name": self.config.client_name, "version": __version__},
        }

    async def _perform_initialize(self) -> None:
        request_id = await self._next_request_id()
        request = build_request("initialize", self._initialization_params(), request_id)
        self.logger.debug("Performing initialize RPC.", request_id=request_id)

        result = await self._send_jsonrpc_request(request)
        if not isinstance(result, dict):
            return
        async with self._lock:
            self._server_info = result.get("serverInfo")
            self._capabilities = result.get("capabilities")

    async def _current_transport(self) -> MCPTransport:
        async with self._lock:
            transport = self._transport
        if transport is None:
            raise MCPConnectionError(f"Not connected to MCP server at {self.base_url}")
        return transport

    async def _send_jsonrpc_request(self, request: dict[str, Any]) -> Any:
        """
        Sends one JSONRPC request and returns its result. Classified client errors
        propagate unchanged; anything else is wrapped as MCPToolCallError.
        """
        method = request.get("method")
        transport = await self._current_transport()
        try:
            response = await transport.send(request)
            return parse_response(response.body, expected_id=request.get("id"))
        except MCPClientError:
            raise
        except Exception as e:
            raise MCPToolCallError(f"Error executing request '{method}': {e}", operation=method) from e

    # --- Generic RPC ----------------------------------------------------

    async def rpc_request(self, method: str, params: dict[str, Any] | None = None) -> Any:
        """
        Sends a JSONRPC request and returns its result, retrying connection failures
        with exponential backoff. Each attempt gets a fresh request id.
        A connection or authorization failure that survives the retries disconnects
        the client, so the next call performs a fresh handshake.
        """
        await self.ensure_connected()

        async def attempt() -> Any:
            request_id = await self._next_request_id()
            self.logger.debug("Sending JSON-RPC request.", method=method, request_id=request_id)
            return await self._send_jsonrpc_request(build_request(method, params, request_id))

        try:
            return await with_retry(
                attempt,
                max_attempts=self.mcp_client_config.max_attempts,
                base_delay=self.mcp_client_config.retry_backoff_seconds,
                max_delay=self.mcp_client_config.max_backoff_seconds,
                retryable_kinds=RETRYABLE_KINDS,
                log=self.logger.bind(method=method),
            )
        except MCPConnectionError as e:
            self.logger.warning("Connection fault, disconnecting.", method=method, error_type=type(e).__name__, error=str(e))
            await self.cleanup()
            raise

    async def rpc_notify(self, method: str, params: dict[str, Any] | None = None) -> None:
        """Sends a JSONRPC notification once. No retry, no response expected."""
        await self.ensure_connected()

        notification = build_notification(method, params)
        transport = await self._current_transport()
        try:
            await transport.send(notification)
        except (MCPServerError, MCPConnectionError) as e:
            raise MCPTransportError(f"Failed to send notification: {e}") from e

    async def ping(self) -> Any:
        return await self.rpc_request("ping")

    # --- Tools ---------------------------------------------------------

    async def list_tools(self) -> list[MCPTool]:
        """
        Lists the tools available on the server. The result is cached until cleanup().
        Raises:
            MCPConnectionError, MCPTransportError, MCPServerError: passed through.
            MCPToolCallError: for anything else, including an unusable response shape.
        """
        async with self._lock:
            if self._tools is not None:
                return self._tools

        try:
            await self.ensure_connected()
            async with self._lock:
                generation = self._connection_generation

            tools_data = await self._request_tools_list(generation)
            tools = [MCPTool.from_json(tool_data, server=self) for tool_data in tools_data]
            async with self._lock:
                if self._is_current(generation):
                    self._tools = tools
            self.logger.info("Fetched tools list.", tool_count=len(tools))
            return tools
        except (MCPConnectionError, MCPTransportError, MCPServerError, MCPToolCallError):
            raise
        except Exception as e:
            raise MCPToolCallError(f"Error listing tools: {e}", operation="tools/list") from e

    def _is_current(self, generation: int) -> bool:
        # Caller holds self._lock.
        return self._connection_generation == generation and self._state is ConnectionState.INITIALIZED

    async def _request_tools_list(self, generation: int) -> list[Any]:
        async with self._lock:
            if self._tools_data is not None:
                return list(self._tools_data)

        result = await self.rpc_request("tools/list")

        if isinstance(result, dict) and result.get("tools") is not None:
            tools_data = result["tools"]
        elif isinstance(result, (list, dict)):
            # Non-conforming servers: treat the whole result as the tools payload.
            tools_data = result
        else:
            raise MCPToolCallError("Failed to get tools list from JSON-RPC request", operation="tools/list")

        if isinstance(tools_data, dict):
            tools_data = [tools_data]
        if not isinstance(tools_data, list):
            raise MCPToolCallError(f"Unexpected tools payload of type {type(tools_data).__name__}", operation="tools/list")

        async with self._lock:
            if self._is_current(generation):
                self._tools_data = tools_data
        return list(tools_data)

    async def call_tool(self, tool_name: str, parameters: dict[str, Any] | None) -> Any:
        """
        Invokes a tool on the MCP server.
        Raises:
            MCPConnectionError, MCPTransportError: passed through.
            MCPToolCallError: for any other failure, naming the tool. A failure that is
                              already an MCPToolCallError is not wrapped again.
        """
        try:
            return await self.rpc_request("tools/call", {"name": tool_name, "arguments": parameters or {}})
        except (MCPConnectionError, MCPTransportError):
            raise
        except MCPToolCallError as e:
            if e.tool_name is None:
                e.tool_name = tool_name
            raise
        except Exception as e:
            raise MCPToolCallError(f"Error calling tool '{tool_name}': {e}", operation="tools/call", tool_name=tool_name) from e

    async def call_tool_streaming(self, tool_name: str, parameters: dict[str, Any] | None) -> AsyncGenerator[Any, None]:
        """
        Streams a tool call. This transport has no real streaming, so the stream
        yields exactly one item: the result of call_tool().
        """
        yield await self.call_tool(tool_name, parameters)

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.cleanup()
