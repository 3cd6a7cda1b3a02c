"""
Command-line interface for mcp-prometheus.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Optional

import click
import structlog
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from mcp_prometheus import __version__
from mcp_prometheus.config import (
    LogFormat,
    PrometheusConfig,
    ServerSettings,
    TransportType,
    clear_settings_cache,
    get_prometheus_config,
)
from mcp_prometheus.context import ServerContext
from mcp_prometheus.exceptions import PrometheusMCPError
from mcp_prometheus.server import create_server

console = Console()
# stdout is reserved for the stdio transport.
err_console = Console(stderr=True)


def setup_logging(debug: bool, format: str) -> None:
    """Configure structlog for the application."""
    level = logging.DEBUG if debug else logging.INFO

    logging.basicConfig(
        format="%(message)s",
        level=level,
        stream=sys.stderr,
        force=True,
    )

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if format == LogFormat.JSON.value:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def describe_auth(config: PrometheusConfig) -> str:
    if config.auth_method == "bearer_token":
        return "Bearer token"
    if config.auth_method == "basic_auth":
        return f"Basic auth (username: {config.username})"
    return "None"


def print_config(config: PrometheusConfig, settings: ServerSettings) -> None:
    """Print the Prometheus connection and transport configuration."""
    table = Table(title="Prometheus configuration", show_header=True)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Server URL", config.url or "(per-call prometheus_url)")
    table.add_row("Authentication", describe_auth(config))
    if config.org_id:
        table.add_row("Organization ID", config.org_id)
    table.add_row("Transport", settings.transport.value)

    if settings.transport == TransportType.SSE:
        table.add_row("HTTP Address", settings.http_addr)
        table.add_row("SSE Endpoint", settings.sse_endpoint)
        table.add_row("Message Endpoint", settings.message_endpoint)
    elif settings.transport == TransportType.STREAMABLE_HTTP:
        table.add_row("HTTP Address", settings.http_addr)
        table.add_row("HTTP Endpoint", settings.http_endpoint)

    err_console.print(table)


@click.group()
@click.version_option(version=__version__, prog_name="mcp-prometheus")
def main() -> None:
    """
    mcp-prometheus - Prometheus HTTP API as Model Context Protocol tools.

    Connection settings are read from PROMETHEUS_URL, PROMETHEUS_USERNAME,
    PROMETHEUS_PASSWORD, PROMETHEUS_TOKEN and PROMETHEUS_ORGID.
    """


@main.command()
@click.option(
    "--transport",
    envvar="MCP_PROMETHEUS_TRANSPORT",
    type=click.Choice(TransportType.values()),
    default=TransportType.STDIO.value,
    show_default=True,
    help="Transport type: stdio, sse, or streamable-http",
)
@click.option(
    "--http-addr",
    envvar="MCP_PROMETHEUS_HTTP_ADDR",
    default=":8080",
    show_default=True,
    help="HTTP server address (for sse and streamable-http transports)",
)
@click.option(
    "--sse-endpoint",
    envvar="MCP_PROMETHEUS_SSE_ENDPOINT",
    default="/sse",
    show_default=True,
    help="SSE endpoint path (for sse transport)",
)
@click.option(
    "--message-endpoint",
    envvar="MCP_PROMETHEUS_MESSAGE_ENDPOINT",
    default="/message",
    show_default=True,
    help="Message endpoint path (for sse transport)",
)
@click.option(
    "--http-endpoint",
    envvar="MCP_PROMETHEUS_HTTP_ENDPOINT",
    default="/mcp",
    show_default=True,
    help="HTTP endpoint path (for streamable-http transport)",
)
@click.option(
    "--debug",
    envvar="MCP_PROMETHEUS_DEBUG",
    is_flag=True,
    help="Enable debug logging",
)
@click.option(
    "--log-format",
    envvar="MCP_PROMETHEUS_LOG_FORMAT",
    type=click.Choice([f.value for f in LogFormat]),
    default=LogFormat.TEXT.value,
    show_default=True,
    help="Log format",
)
@click.option("--quiet", "-q", is_flag=True, help="Suppress banner and config output")
def serve(
    transport: str,
    http_addr: str,
    sse_endpoint: str,
    message_endpoint: str,
    http_endpoint: str,
    debug: bool,
    log_format: str,
    quiet: bool,
) -> None:
    """
    Start the MCP Prometheus server.

    \b
    Examples:
      # Run with stdio (for desktop MCP clients)
      PROMETHEUS_URL=http://prometheus:9090 mcp-prometheus serve

      # Run as an SSE server
      mcp-prometheus serve --transport sse --http-addr :8080

      # Run as a streamable-http server
      mcp-prometheus serve --transport streamable-http --http-endpoint /mcp
    """
    clear_settings_cache()

    try:
        settings = ServerSettings(
            transport=TransportType(transport),
            http_addr=http_addr,
            sse_endpoint=sse_endpoint,
            message_endpoint=message_endpoint,
            http_endpoint=http_endpoint,
            debug=debug,
            log_format=LogFormat(log_format),
        )
        prometheus_config = get_prometheus_config()
    except ValueError as e:
        err_console.print(f"[red]Configuration error:[/red] {e}")
        sys.exit(1)

    setup_logging(settings.debug, settings.log_format.value)

    if not quiet:
        err_console.print(
            Panel(
                f"[bold blue]mcp-prometheus {__version__}[/bold blue]\n"
                "[dim]Prometheus tools for the Model Context Protocol[/dim]",
                border_style="blue",
            )
        )
        print_config(prometheus_config, settings)
        err_console.print(
            f"Starting MCP Prometheus server with {settings.transport.value} transport..."
        )

    context = ServerContext(prometheus_config=prometheus_config, debug=settings.debug)
    server = create_server(settings, context)

    try:
        asyncio.run(server.run())
    except KeyboardInterrupt:
        if not quiet:
            err_console.print("\n[yellow]Shutting down...[/yellow]")
    except Exception as e:
        err_console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    if not quiet:
        err_console.print("Server gracefully stopped")


@main.command()
def version() -> None:
    """Print the version number."""
    click.echo(f"mcp-prometheus {__version__}")


@main.command()
def tools() -> None:
    """List all available MCP tools."""
    server = create_server(
        ServerSettings(),
        ServerContext(prometheus_config=PrometheusConfig(url="http://localhost:9090")),
    )

    table = Table(title="Available Tools", show_header=True)
    table.add_column("Tool", style="cyan", width=24)
    table.add_column("Description", style="white")
    table.add_column("Required", style="yellow")

    for tool in server.registry.list_tools():
        required = tool.inputSchema.get("required") or []
        table.add_row(tool.name, tool.description or "", ", ".join(required))

    console.print(table)
    console.print(f"\n{len(server.registry)} tools registered")


@main.command()
@click.option(
    "--url",
    default=None,
    help="Prometheus server URL (default: PROMETHEUS_URL)",
)
def check(url: Optional[str]) -> None:
    """Check connectivity to the Prometheus server."""
    from mcp_prometheus.client import PrometheusClient

    clear_settings_cache()

    try:
        base = get_prometheus_config()
        config = base.model_copy(update={"url": PrometheusConfig(url=url).url}) if url else base
        client = PrometheusClient(config)
    except (ValueError, PrometheusMCPError) as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        sys.exit(1)

    console.print(f"[cyan]Checking connection to:[/cyan] {config.url}")

    async def do_check() -> None:
        async with client:
            build_info = await client.get_build_info()
            console.print(
                f"[green]✓[/green] Prometheus version: {build_info.get('version', 'unknown')}"
            )

            result = await client.query("up")
            count = len(result.result or [])
            console.print(f"[green]✓[/green] Query test passed ({count} series)")

    try:
        asyncio.run(do_check())
        console.print("\n[green]Connection successful![/green]")
    except Exception as e:
        console.print(f"\n[red]Connection failed:[/red] {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
