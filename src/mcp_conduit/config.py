"""Configuration management for MCP Conduit."""

import json
from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LoggingConfig(BaseModel):
    """Configuration for logging."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="json", description="Log format ('json' or 'console')")


class MCPClientConfig(BaseModel):
    """Configuration for the MCP client behavior."""
    read_timeout_seconds: float = Field(default=30.0, gt=0, description="Timeout for a whole request/response exchange with the MCP server.")
    connect_timeout_seconds: float = Field(default=30.0, gt=0, description="Timeout for establishing a connection to the MCP server.")
    max_attempts: int = Field(default=3, ge=1, description="Maximum number of attempts for a request that fails with a connection error.")
    retry_backoff_seconds: float = Field(default=1.0, ge=0, description="Base delay for exponential backoff between attempts.")
    max_backoff_seconds: float = Field(default=30.0, ge=0, description="Upper bound for a single backoff delay.")
    connection_pool_total_limit: int = Field(default=100, ge=1, description="Total connection pool limit for aiohttp session.")
    connection_pool_per_host_limit: int = Field(default=30, ge=1, description="Per-host connection pool limit for aiohttp session.")
    connection_pool_dns_cache_ttl_seconds: int = Field(default=300, ge=0, description="DNS cache TTL in seconds for aiohttp session.")
    ssl_verify: bool = Field(default=True, description="Enable/disable SSL certificate verification for HTTP clients.")


class Config(BaseSettings):
    """Main configuration for MCP Conduit. Loads from environment variables prefixed with MCP_CONDUIT_."""

    model_config = SettingsConfigDict(
        env_prefix='MCP_CONDUIT_',
        env_nested_delimiter='__', # e.g., MCP_CONDUIT_MCP_CLIENT__MAX_ATTEMPTS
        extra='ignore',
        env_file='.env',
        env_file_encoding='utf-8'
    )

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    mcp_client: MCPClientConfig = Field(default_factory=MCPClientConfig)
    client_name: str = Field(default="mcp-conduit", description="Client name announced in the initialize handshake.")
    protocol_version: str = Field(default="2025-03-26", description="MCP protocol version requested during initialize.")

    @classmethod
    def from_file(cls, file_path: Path) -> "Config":
        """Create configuration strictly from a JSON file.
        Note: This does not layer with environment variables.
        """
        with open(file_path) as f:
            config_data = json.load(f)
        return cls.model_validate(config_data)
