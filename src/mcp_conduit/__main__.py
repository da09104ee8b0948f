"""CLI entry point for MCP Conduit."""

import asyncio
import json
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, Optional

import click

from .config import Config
from .logging_config import configure_logging
from .mcp_client import HTTPMCPClient, MCPClientError
from .models import DEFAULT_ENDPOINT, MCPServiceRecord


def _parse_headers(headers: tuple[str, ...]) -> dict[str, str]:
    parsed: dict[str, str] = {}
    for header in headers:
        name, sep, value = header.partition("=")
        if not sep or not name.strip():
            raise click.BadParameter(f"Expected NAME=VALUE, got {header!r}", param_hint="--header")
        parsed[name.strip()] = value.strip()
    return parsed


def _run_with_client(config: Config, url: str, endpoint: str, headers: tuple[str, ...],
                     action: Callable[[HTTPMCPClient], Awaitable[Any]]) -> Any:
    record = MCPServiceRecord(name=url, base_url=url, endpoint=endpoint, headers=_parse_headers(headers))
    try:
        client = HTTPMCPClient(record, config)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="URL")

    async def run() -> Any:
        async with client:
            return await action(client)

    try:
        return asyncio.run(run())
    except MCPClientError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


_endpoint_option = click.option(
    "--endpoint", "-e",
    default=DEFAULT_ENDPOINT,
    show_default=True,
    help="JSON-RPC endpoint path. A path given in URL takes precedence when this is left at the default."
)
_header_option = click.option(
    "--header", "-H", "headers",
    multiple=True,
    help="Extra HTTP header as NAME=VALUE. Can be used multiple times."
)


@click.group()
@click.option(
    "--config-file", "-c",
    type=click.Path(exists=True, dir_okay=False, resolve_path=True),
    help="Path to a JSON configuration file.",
    envvar="MCP_CONDUIT_CONFIG_FILE"
)
@click.option(
    "--log-level", "-l",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    default=None,
    help="Override the logging level (e.g., DEBUG, INFO)."
)
@click.option(
    "--log-format",
    type=click.Choice(["console", "json"], case_sensitive=False),
    default=None,
    help="Override logging format."
)
@click.pass_context
def cli(ctx: click.Context, config_file: Optional[str], log_level: Optional[str], log_format: Optional[str]) -> None:
    """MCP Conduit - list and call tools on a remote MCP server over HTTP."""
    try:
        if config_file:
            cfg = Config.from_file(Path(config_file))
        else:
            cfg = Config()
    except Exception as e:
        click.echo(f"Error loading configuration: {e}", err=True)
        sys.exit(1)

    if log_level:
        cfg.logging.level = log_level.upper()
    if log_format:
        cfg.logging.format = log_format.lower()

    configure_logging(cfg.logging)
    ctx.ensure_object(dict)
    ctx.obj["config"] = cfg


@cli.command()
@click.argument("url")
@_endpoint_option
@_header_option
@click.pass_context
def tools(ctx: click.Context, url: str, endpoint: str, headers: tuple[str, ...]) -> None:
    """List the tools offered by the MCP server at URL."""
    config: Config = ctx.obj["config"]

    async def list_tools(client: HTTPMCPClient):
        return await client.list_tools()

    for tool in _run_with_client(config, url, endpoint, headers, list_tools):
        click.echo(f"{tool.name}\t{tool.description or ''}")


@cli.command()
@click.argument("url")
@click.argument("tool_name")
@click.option("--arguments", "-a", default="{}", show_default=True, help="Tool arguments as a JSON object.")
@_endpoint_option
@_header_option
@click.pass_context
def call(ctx: click.Context, url: str, tool_name: str, arguments: str, endpoint: str, headers: tuple[str, ...]) -> None:
    """Call TOOL_NAME on the MCP server at URL and print the JSON result."""
    config: Config = ctx.obj["config"]
    try:
        parsed_arguments = json.loads(arguments)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"Invalid JSON: {e}", param_hint="--arguments")
    if not isinstance(parsed_arguments, dict):
        raise click.BadParameter("Arguments must be a JSON object.", param_hint="--arguments")

    async def call_tool(client: HTTPMCPClient):
        return await client.call_tool(tool_name, parsed_arguments)

    result = _run_with_client(config, url, endpoint, headers, call_tool)
    click.echo(json.dumps(result, indent=2))


@cli.command()
def version() -> None:
    """Show version information."""
    from . import __version__
    click.echo(f"MCP Conduit v{__version__}")


@cli.command()
@click.pass_context
def config_show(ctx: click.Context) -> None:
    """Show current configuration."""
    config: Config = ctx.obj["config"]
    click.echo(json.dumps(config.model_dump(mode="json"), indent=2))


if __name__ == "__main__":
    cli()
