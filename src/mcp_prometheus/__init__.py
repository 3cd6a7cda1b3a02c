"""
mcp-prometheus

Exposes the Prometheus HTTP API as Model Context Protocol (MCP) tools,
so AI agents can run PromQL queries and inspect targets, rules and alerts.
"""

__version__ = "0.1.0"

from mcp_prometheus.client import PrometheusClient, create_client  # noqa: E402
from mcp_prometheus.config import PrometheusConfig, ServerSettings  # noqa: E402
from mcp_prometheus.context import ServerContext  # noqa: E402
from mcp_prometheus.server import PrometheusServer, create_server  # noqa: E402

__all__ = [
    "create_server",
    "create_client",
    "PrometheusServer",
    "PrometheusClient",
    "PrometheusConfig",
    "ServerSettings",
    "ServerContext",
    "__version__",
]
