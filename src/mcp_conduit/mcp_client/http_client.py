"""
MCP Client implementation using HTTP/HTTPS transport.
"""
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlparse

import aiohttp
import structlog

from .. import __version__
from ..config import Config, MCPClientConfig
from ..models.mcp import DEFAULT_ENDPOINT, MCPServiceRecord
from .base_client import BaseMCPClient
from .exceptions import (
    MCPAuthError,
    MCPConnectionError,
    MCPServerError,
    MCPTimeoutError,
    MCPTransportError,
)
from .jsonrpc import encode

logger = structlog.get_logger(__name__)

_DEFAULT_PORTS = {"http": 80, "https": 443}


def normalize_server_url(base_url: str, endpoint: str = DEFAULT_ENDPOINT) -> tuple[str, str]:
    """
    Splits a user-supplied server URL into ``(scheme://host[:port], endpoint)``.

    Default ports are dropped. When the URL carries a path and ``endpoint`` is left at
    the default, the path becomes the endpoint, so ``http://host:8080/api`` resolves to
    ``("http://host:8080", "/api")``.
    """
    parsed = urlparse(base_url.strip().rstrip("/"))
    if not parsed.scheme or not parsed.hostname:
        raise ValueError(f"Invalid MCP server URL: {base_url!r}")

    host = parsed.hostname
    if ":" in host: # IPv6 literal
        host = f"[{host}]"
    port = parsed.port
    port_part = f":{port}" if port and port != _DEFAULT_PORTS.get(parsed.scheme) else ""
    normalized_base = f"{parsed.scheme}://{host}{port_part}"

    if parsed.path and parsed.path != "/" and endpoint == DEFAULT_ENDPOINT:
        resolved_endpoint = parsed.path
    else:
        resolved_endpoint = endpoint
    if not resolved_endpoint.startswith("/"):
        resolved_endpoint = "/" + resolved_endpoint
    return normalized_base, resolved_endpoint


def build_headers(extra_headers: dict[str, str] | None, client_name: str, version: str = __version__) -> dict[str, str]:
    """Merges caller headers with the fixed JSON-RPC headers. The fixed headers always win."""
    fixed = {
        "Content-Type": "application/json",
        "Accept": "application/json",
        "User-Agent": f"{client_name}/{version}",
    }
    fixed_keys = {k.lower() for k in fixed}
    headers = {k: v for k, v in (extra_headers or {}).items() if k.lower() not in fixed_keys}
    headers.update(fixed)
    return headers


def raise_for_http_status(status: int, reason: str = "") -> None:
    """Maps a non-2xx HTTP status to the client error taxonomy."""
    reason = (reason or "").strip()
    reason_text = f" {reason}" if reason else ""

    if status in (401, 403):
        raise MCPAuthError(status)
    if 400 <= status <= 499:
        raise MCPServerError(f"Client error: HTTP {status}{reason_text}", status=status, reason=reason)
    if 500 <= status <= 599:
        raise MCPServerError(f"Server error: HTTP {status}{reason_text}", status=status, reason=reason)
    raise MCPServerError(f"HTTP error: {status}{reason_text}", status=status, reason=reason)


@dataclass(frozen=True)
class HTTPResponse:
    status: int
    body: str
    reason: str = ""


class HTTPTransport:
    """
    Sends JSONRPC envelopes with HTTP POST using an aiohttp.ClientSession.
    A session passed in by the caller is shared and never closed here.
    """

    def __init__(self, url: str, headers: dict[str, str], client_config: MCPClientConfig,
                 session: aiohttp.ClientSession | None = None, parent_logger: Any | None = None):
        self.url = url
        self.headers = headers
        self.client_config = client_config
        self._session = session
        self._owns_session = session is None
        self._timeout = aiohttp.ClientTimeout(
            total=client_config.read_timeout_seconds,
            connect=client_config.connect_timeout_seconds,
        )
        self.logger = (parent_logger or logger).bind(transport="http", url=url)

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is not None and not self._session.closed:
            return self._session
        if not self._owns_session:
            raise MCPConnectionError(f"Shared aiohttp session for {self.url} is closed.")

        self.logger.debug("Creating aiohttp session.")
        ssl_context = True
        if not self.client_config.ssl_verify:
            self.logger.warning("SSL verification is DISABLED for HTTP client. This is insecure for production.")
            ssl_context = False

        connector = aiohttp.TCPConnector(
            limit=self.client_config.connection_pool_total_limit,
            limit_per_host=self.client_config.connection_pool_per_host_limit,
            ttl_dns_cache=self.client_config.connection_pool_dns_cache_ttl_seconds,
            ssl=ssl_context,
        )
        self._session = aiohttp.ClientSession(connector=connector)
        return self._session

    async def open(self) -> None:
        await self._get_session()

    async def send(self, envelope: dict[str, Any]) -> HTTPResponse:
        """
        POSTs one envelope and returns the raw response.
        Raises:
            MCPAuthError: on HTTP 401/403.
            MCPServerError: on any other non-2xx status.
            MCPConnectionError: when the server cannot be reached or drops the connection.
            MCPTimeoutError: when the connect or read timeout expires.
            MCPTransportError: for any other aiohttp failure.
        """
        session = await self._get_session()
        body = encode(envelope)
        self.logger.debug("Sending HTTP JSONRPC request", method=envelope.get("method"), request_id=envelope.get("id"), body=body)

        try:
            async with session.post(self.url, data=body, headers=self.headers, timeout=self._timeout) as response:
                response_text = await response.text()
                reason = response.reason or ""
                self.logger.debug("Received HTTP response", status=response.status, body=response_text[:500])

                if not 200 <= response.status < 300:
                    self.logger.warning("HTTP error status received", status=response.status, reason=reason, response_body=response_text[:500])
                    raise_for_http_status(response.status, reason)

                return HTTPResponse(status=response.status, body=response_text, reason=reason)

        except TimeoutError as e: # Also aiohttp.ServerTimeoutError
            self.logger.error("Request timed out", timeout_total=self.client_config.read_timeout_seconds)
            raise MCPTimeoutError(f"Request to {self.url} timed out after {self.client_config.read_timeout_seconds}s.") from e
        except aiohttp.ClientResponseError as e:
            raise_for_http_status(e.status, e.message)
        except aiohttp.ClientConnectorError as e:
            self.logger.error("Client connector error", error_os_error=str(e.os_error), error_str=str(e))
            raise MCPConnectionError(f"Server connection lost: {e.os_error or e}") from e
        except (aiohttp.ClientOSError, aiohttp.ServerDisconnectedError) as e:
            self.logger.error("Connection dropped", error_type=type(e).__name__, error_message=str(e))
            raise MCPConnectionError(f"Server connection lost: {e}") from e
        except aiohttp.ClientError as e:
            self.logger.error("AIOHTTP client error", error_type=type(e).__name__, error_message=str(e))
            raise MCPTransportError(f"HTTP request failed: {e}") from e

    async def close(self) -> None:
        session, self._session = self._session, None
        if session is not None and self._owns_session and not session.closed:
            await session.close()


class HTTPMCPClient(BaseMCPClient):
    """
    MCP Client that communicates with an MCP server over HTTP or HTTPS.
    It uses aiohttp.ClientSession for making asynchronous HTTP requests.
    """

    def __init__(self, service_record: MCPServiceRecord, config: Config, aiohttp_session: aiohttp.ClientSession | None = None):
        super().__init__(service_record.name, config)
        self.service_record = service_record
        self._base_url, self.endpoint = normalize_server_url(service_record.base_url, service_record.endpoint)
        self.headers = build_headers(service_record.headers, config.client_name)
        self._shared_session = aiohttp_session
        self.logger = logger.bind(server_name=service_record.name, base_url=self._base_url, endpoint=self.endpoint)

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def url(self) -> str:
        return f"{self._base_url}{self.endpoint}"

    def _create_transport(self) -> HTTPTransport:
        return HTTPTransport(
            self.url,
            self.headers,
            self.mcp_client_config,
            session=self._shared_session,
            parent_logger=self.logger,
        )
