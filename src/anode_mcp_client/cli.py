"""Anode MCP command line.

Default mode is the stdio bridge (for editors and agent CLIs that launch
MCP servers as subprocesses).

Usage:
    anode-mcp                              # stdio bridge (host from ANODE_HOST)
    anode-mcp --host 192.168.1.20          # stdio bridge to a given device
    anode-mcp --no-reconnect               # exit when the socket drops

    anode-mcp ping --host 192.168.1.20     # handshake + ping
    anode-mcp tools                        # list remote tools
    anode-mcp call device_get_screen_size  # call a tool
    anode-mcp call gesture_tap '{"x": 100, "y": 200}'
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import click

from .bridge import run_bridge
from .client import McpClient
from .config import DEFAULT_HTTP_PORT, ClientConfig, TransportMode
from .errors import McpClientError

T = TypeVar("T")

# Output format options
FORMAT_TABLE = "table"
FORMAT_JSON = "json"


def configure_logging(verbose: bool) -> None:
    """Log to stderr; stdout carries protocol frames and command output."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="[anode-mcp] %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _base_config(
    host: str | None,
    port: int | None,
    reconnect: bool | None,
    reconnect_interval: int | None,
) -> ClientConfig:
    """Environment defaults overridden by explicit options."""
    config = ClientConfig.from_env()
    if host:
        config.host = host
    if port is not None:
        config.ws_port = port
    if reconnect is not None:
        config.auto_reconnect = reconnect
    if reconnect_interval is not None:
        config.reconnect_interval = reconnect_interval / 1000
    return config


def connection_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Options shared by the one-shot client commands."""
    func = click.option("--host", default=None, help="Device host (default: $ANODE_HOST)")(func)
    func = click.option(
        "--port", type=int, default=None, help="WebSocket port (default: $ANODE_PORT or 8765)"
    )(func)
    func = click.option("--http-port", type=int, default=DEFAULT_HTTP_PORT, help="HTTP/SSE port")(
        func
    )
    func = click.option(
        "--transport",
        "transport_mode",
        type=click.Choice([mode.value for mode in TransportMode]),
        default=TransportMode.WEBSOCKET.value,
        help="Transport to use",
    )(func)
    func = click.option("--timeout", type=float, default=30.0, help="Request timeout in seconds")(
        func
    )
    return func


def _client_config(
    host: str | None,
    port: int | None,
    http_port: int,
    transport_mode: str,
    timeout: float,
) -> ClientConfig:
    config = _base_config(host, port, reconnect=False, reconnect_interval=None)
    config.http_port = http_port
    config.transport = TransportMode(transport_mode)
    config.timeout = timeout
    return config


def _run_with_client(config: ClientConfig, action: Callable[[McpClient], Awaitable[T]]) -> T:
    """Connect, run ``action``, disconnect; turn client errors into exit status 1."""

    async def execute() -> T:
        async with McpClient(config) as client:
            return await action(client)

    try:
        return asyncio.run(execute())
    except McpClientError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@click.group(invoke_without_command=True)
@click.option("--host", default=None, help="Device host (default: $ANODE_HOST)")
@click.option("--port", type=int, default=None, help="WebSocket port (default: $ANODE_PORT)")
@click.option(
    "--reconnect/--no-reconnect",
    default=None,
    help="Reconnect after the socket drops (default: $ANODE_RECONNECT)",
)
@click.option(
    "--reconnect-interval",
    type=int,
    default=None,
    help="Reconnect interval in milliseconds (default: $ANODE_RECONNECT_INTERVAL)",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging on stderr")
@click.pass_context
def main(
    ctx: click.Context,
    host: str | None,
    port: int | None,
    reconnect: bool | None,
    reconnect_interval: int | None,
    verbose: bool,
) -> None:
    """Anode MCP client - drive an Android device over MCP.

    Without a subcommand, relays stdio to the device's WebSocket so
    stdio-only MCP hosts can use it.
    """
    configure_logging(verbose)

    # If a subcommand is invoked, let it handle everything
    if ctx.invoked_subcommand is not None:
        return

    config = _base_config(host, port, reconnect, reconnect_interval)
    click.echo(f"Bridging stdio to {config.ws_url}", err=True)

    try:
        exit_code = asyncio.run(run_bridge(config))
    except KeyboardInterrupt:
        click.echo("\nShutting down", err=True)
        exit_code = 0
    sys.exit(exit_code)


@main.command()
@connection_options
def ping(
    host: str | None,
    port: int | None,
    http_port: int,
    transport_mode: str,
    timeout: float,
) -> None:
    """Handshake with the device and send a ping."""
    config = _client_config(host, port, http_port, transport_mode, timeout)

    async def action(client: McpClient) -> str:
        await client.ping()
        server = client.server
        return f"{server.name} {server.version}" if server else "unknown server"

    click.echo(f"Pong from {_run_with_client(config, action)}")


@main.command()
@connection_options
@click.option(
    "--format",
    "output_format",
    type=click.Choice([FORMAT_TABLE, FORMAT_JSON]),
    default=FORMAT_TABLE,
    help="Output format",
)
def tools(
    host: str | None,
    port: int | None,
    http_port: int,
    transport_mode: str,
    timeout: float,
    output_format: str,
) -> None:
    """List the tools the device exposes."""
    config = _client_config(host, port, http_port, transport_mode, timeout)
    tool_list = _run_with_client(config, lambda client: client.list_tools())

    if output_format == FORMAT_JSON:
        click.echo(json.dumps([tool.model_dump(exclude_none=True) for tool in tool_list], indent=2))
        return

    if not tool_list:
        click.echo("No tools found.")
        return

    width = max(len(tool.name) for tool in tool_list)
    for tool in tool_list:
        click.echo(f"{tool.name.ljust(width)}  {tool.description}")


@main.command()
@connection_options
@click.argument("name")
@click.argument("arguments", required=False)
def call(
    host: str | None,
    port: int | None,
    http_port: int,
    transport_mode: str,
    timeout: float,
    name: str,
    arguments: str | None,
) -> None:
    """Call tool NAME with an optional JSON object of ARGUMENTS."""
    args: dict[str, Any] | None = None
    if arguments:
        try:
            args = json.loads(arguments)
        except json.JSONDecodeError as e:
            raise click.BadParameter(f"not valid JSON: {e}", param_hint="ARGUMENTS") from e
        if not isinstance(args, dict):
            raise click.BadParameter("must be a JSON object", param_hint="ARGUMENTS")

    config = _client_config(host, port, http_port, transport_mode, timeout)
    result = _run_with_client(config, lambda client: client.call_tool(name, args))

    if isinstance(result, str):
        click.echo(result)
    else:
        click.echo(json.dumps(result, indent=2, ensure_ascii=False))


if __name__ == "__main__":
    main()
