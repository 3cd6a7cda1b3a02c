"""Tests for the MCP server wiring and HTTP endpoints."""

from __future__ import annotations

import httpx
import pytest
from httpx import Response
from mcp.shared.memory import create_connected_server_and_client_session

from mcp_prometheus.config import ServerSettings, TransportType
from mcp_prometheus.context import ServerContext
from mcp_prometheus.server import PrometheusServer, create_server


@pytest.fixture
def server(context: ServerContext) -> PrometheusServer:
    return create_server(ServerSettings(), context)


class TestPrometheusServer:
    """Test server construction."""

    def test_create_server(self, server: PrometheusServer):
        assert server.settings.transport == TransportType.STDIO
        assert len(server.registry) == 18
        assert server.server.name == "mcp-prometheus"

    def test_debug_flag_from_settings(self):
        server = create_server(ServerSettings(debug=True))
        assert server.context.debug is True


class TestEndToEnd:
    """In-memory MCP client/server round trips."""

    @pytest.mark.asyncio
    async def test_list_tools(self, server: PrometheusServer):
        async with create_connected_server_and_client_session(server.server) as session:
            result = await session.list_tools()

        names = {tool.name for tool in result.tools}
        assert "execute_query" in names
        assert "get_targets_metadata" in names
        assert len(names) == 18

    @pytest.mark.asyncio
    async def test_execute_query(
        self,
        server: PrometheusServer,
        mock_prometheus,
        mock_empty_vector_response: dict,
    ):
        mock_prometheus.post("/api/v1/query").mock(
            return_value=Response(200, json=mock_empty_vector_response)
        )

        async with create_connected_server_and_client_session(server.server) as session:
            result = await session.call_tool("execute_query", {"query": "up"})

        assert result.isError is False
        assert result.content[0].text.startswith("Query executed successfully")

    @pytest.mark.asyncio
    async def test_missing_parameter_is_tool_error(self, server: PrometheusServer):
        async with create_connected_server_and_client_session(server.server) as session:
            result = await session.call_tool("execute_query", {})

        assert result.isError is True
        assert "query parameter is required" in result.content[0].text


class TestHTTPApps:
    """Test the Starlette apps behind the HTTP transports."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", ["/health", "/healthz"])
    async def test_health(self, server: PrometheusServer, path: str):
        app = server.build_streamable_http_app()

        async with httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app), base_url="http://test"
        ) as client:
            response = await client.get(path)

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", ["/ready", "/readyz"])
    async def test_ready(self, server: PrometheusServer, path: str):
        app = server.build_sse_app()

        async with httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app), base_url="http://test"
        ) as client:
            response = await client.get(path)

        assert response.status_code == 200
        assert response.json() == {"status": "ready", "tools": 18}

    @pytest.mark.asyncio
    async def test_not_ready_after_shutdown(self, server: PrometheusServer):
        app = server.build_sse_app()
        server.context.shutdown()

        async with httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app), base_url="http://test"
        ) as client:
            response = await client.get("/readyz")

        assert response.status_code == 503

    def test_sse_routes(self, context: ServerContext):
        settings = ServerSettings(
            transport="sse", sse_endpoint="/events", message_endpoint="/messages"
        )
        app = create_server(settings, context).build_sse_app()

        paths = {route.path for route in app.routes}
        assert "/events" in paths
        assert "/messages" in paths

    def test_streamable_http_routes(self, context: ServerContext):
        settings = ServerSettings(transport="streamable-http", http_endpoint="/api/mcp")
        app = create_server(settings, context).build_streamable_http_app()

        paths = {route.path for route in app.routes}
        assert "/api/mcp" in paths
        assert "/health" in paths
