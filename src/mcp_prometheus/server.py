"""
MCP server hosting the Prometheus tools.

Supports three transports: stdio, sse and streamable-http. The HTTP
transports also serve health and readiness endpoints.
"""

from __future__ import annotations

import contextlib
from typing import Any, AsyncIterator, Optional

import structlog
import uvicorn
from mcp import types
from mcp.server.lowlevel import Server
from mcp.server.sse import SseServerTransport
from mcp.server.stdio import stdio_server
from mcp.server.streamable_http_manager import StreamableHTTPSessionManager
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import BaseRoute, Mount, Route

from mcp_prometheus import __version__
from mcp_prometheus.config import ServerSettings, TransportType
from mcp_prometheus.context import ServerContext
from mcp_prometheus.tools import ToolRegistry, register_prometheus_tools

logger = structlog.get_logger(__name__)

SERVER_NAME = "mcp-prometheus"


class PrometheusServer:
    """MCP server exposing the Prometheus HTTP API as tools."""

    def __init__(
        self,
        settings: Optional[ServerSettings] = None,
        context: Optional[ServerContext] = None,
    ) -> None:
        self.settings = settings or ServerSettings()
        self.context = context or ServerContext(debug=self.settings.debug)
        self.registry = ToolRegistry(self.context)
        register_prometheus_tools(self.registry)
        self.server = self._build_server()

    def _build_server(self) -> Server:
        server: Server = Server(SERVER_NAME, version=__version__)
        registry = self.registry

        @server.list_tools()
        async def list_tools() -> list[types.Tool]:
            return registry.list_tools()

        # Arguments are checked by the tool handlers so that missing or
        # malformed parameters come back as tool errors.
        @server.call_tool(validate_input=False)
        async def call_tool(name: str, arguments: dict[str, Any]) -> types.CallToolResult:
            return await registry.call(name, arguments)

        return server

    async def run(self) -> None:
        """Run the server with the configured transport."""
        transport = self.settings.transport

        try:
            if transport == TransportType.STDIO:
                await self.run_stdio()
            elif transport == TransportType.SSE:
                await self.run_sse()
            elif transport == TransportType.STREAMABLE_HTTP:
                await self.run_streamable_http()
            else:
                raise ValueError(f"Unsupported transport: {transport}")
        finally:
            self.context.shutdown()

    async def run_stdio(self) -> None:
        """Run with stdio transport."""
        logger.info("Starting mcp-prometheus (stdio)", tools=len(self.registry))
        async with stdio_server() as (read_stream, write_stream):
            await self.server.run(
                read_stream,
                write_stream,
                self.server.create_initialization_options(),
            )

    async def run_sse(self) -> None:
        """Run with SSE transport."""
        host, port = self.settings.bind_address()
        logger.info(
            "Starting mcp-prometheus (sse)",
            host=host,
            port=port,
            sse_endpoint=self.settings.sse_endpoint,
            message_endpoint=self.settings.message_endpoint,
        )
        await self._serve(self.build_sse_app(), host, port)

    async def run_streamable_http(self) -> None:
        """Run with streamable-http transport."""
        host, port = self.settings.bind_address()
        logger.info(
            "Starting mcp-prometheus (streamable-http)",
            host=host,
            port=port,
            http_endpoint=self.settings.http_endpoint,
        )
        await self._serve(self.build_streamable_http_app(), host, port)

    async def _serve(self, app: Starlette, host: str, port: int) -> None:
        config = uvicorn.Config(
            app,
            host=host,
            port=port,
            log_level="debug" if self.context.debug else "info",
        )
        await uvicorn.Server(config).serve()

    def health_routes(self) -> list[BaseRoute]:
        """Liveness and readiness routes shared by the HTTP transports."""

        async def health_endpoint(request: Request) -> JSONResponse:
            return JSONResponse({"status": "healthy"})

        async def ready_endpoint(request: Request) -> JSONResponse:
            if self.context.closed:
                return JSONResponse({"status": "shutting down"}, status_code=503)
            return JSONResponse({"status": "ready", "tools": len(self.registry)})

        return [
            Route("/health", health_endpoint, methods=["GET"]),
            Route("/healthz", health_endpoint, methods=["GET"]),
            Route("/ready", ready_endpoint, methods=["GET"]),
            Route("/readyz", ready_endpoint, methods=["GET"]),
        ]

    def build_sse_app(self) -> Starlette:
        """Starlette app serving the SSE stream and its message endpoint."""
        message_path = self.settings.message_endpoint.rstrip("/") + "/"
        sse = SseServerTransport(message_path)
        server = self.server

        async def handle_sse(request: Request) -> Response:
            async with sse.connect_sse(
                request.scope, request.receive, request._send
            ) as (read_stream, write_stream):
                await server.run(
                    read_stream,
                    write_stream,
                    server.create_initialization_options(),
                )
            return Response()

        routes = [
            *self.health_routes(),
            Route(self.settings.sse_endpoint, endpoint=handle_sse, methods=["GET"]),
            Mount(message_path, app=sse.handle_post_message),
        ]
        return Starlette(debug=self.context.debug, routes=routes)

    def build_streamable_http_app(self) -> Starlette:
        """Starlette app serving the streamable-http endpoint."""
        session_manager = StreamableHTTPSessionManager(app=self.server)

        async def handle_streamable_http(scope: Any, receive: Any, send: Any) -> None:
            await session_manager.handle_request(scope, receive, send)

        @contextlib.asynccontextmanager
        async def lifespan(app: Starlette) -> AsyncIterator[None]:
            async with session_manager.run():
                yield

        routes = [
            *self.health_routes(),
            Mount(self.settings.http_endpoint, app=handle_streamable_http),
        ]
        return Starlette(debug=self.context.debug, routes=routes, lifespan=lifespan)


def create_server(
    settings: Optional[ServerSettings] = None,
    context: Optional[ServerContext] = None,
) -> PrometheusServer:
    """Create a new mcp-prometheus server instance."""
    return PrometheusServer(settings=settings, context=context)
