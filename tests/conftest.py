"""Pytest configuration and fixtures."""

from __future__ import annotations

import pytest
import respx

from mcp_prometheus.client import PrometheusClient
from mcp_prometheus.config import PrometheusConfig, clear_settings_cache
from mcp_prometheus.context import ServerContext
from mcp_prometheus.tools import ToolRegistry, register_prometheus_tools

PROMETHEUS_URL = "http://localhost:9090"

ENV_VARS = (
    "PROMETHEUS_URL",
    "PROMETHEUS_USERNAME",
    "PROMETHEUS_PASSWORD",
    "PROMETHEUS_TOKEN",
    "PROMETHEUS_ORGID",
    "PROMETHEUS_ORG_ID",
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch, tmp_path):
    """Isolate each test from the caller's Prometheus environment and .env file."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def config() -> PrometheusConfig:
    """Create a test connection config."""
    return PrometheusConfig(url=PROMETHEUS_URL)


@pytest.fixture
def config_with_basic_auth() -> PrometheusConfig:
    """Create a test config with basic auth."""
    return PrometheusConfig(url=PROMETHEUS_URL, username="admin", password="secret")


@pytest.fixture
def config_with_bearer_auth() -> PrometheusConfig:
    """Create a test config with bearer auth."""
    return PrometheusConfig(url=PROMETHEUS_URL, token="test-token")


@pytest.fixture
async def client(config: PrometheusConfig) -> PrometheusClient:
    """Create a connected test client."""
    client = PrometheusClient(config)
    await client.connect()
    yield client
    await client.close()


@pytest.fixture
def context(config: PrometheusConfig) -> ServerContext:
    """Server context with a programmatic base config."""
    return ServerContext(prometheus_config=config)


@pytest.fixture
def empty_context() -> ServerContext:
    """Server context with no URL configured anywhere."""
    return ServerContext(prometheus_config=PrometheusConfig())


@pytest.fixture
def registry(context: ServerContext) -> ToolRegistry:
    """Tool registry with all Prometheus tools registered."""
    registry = ToolRegistry(context)
    register_prometheus_tools(registry)
    return registry


@pytest.fixture
def mock_prometheus():
    """Mock Prometheus API responses."""
    with respx.mock(base_url=PROMETHEUS_URL, assert_all_called=False) as mock:
        yield mock


# =============================================================================
# Common Mock Responses
# =============================================================================


@pytest.fixture
def mock_query_response() -> dict:
    """Mock instant query response."""
    return {
        "status": "success",
        "data": {
            "resultType": "vector",
            "result": [
                {
                    "metric": {"__name__": "up", "job": "prometheus", "instance": "localhost:9090"},
                    "value": [1704067200, "1"],
                },
                {
                    "metric": {"__name__": "up", "job": "node", "instance": "localhost:9100"},
                    "value": [1704067200, "1"],
                },
            ],
        },
    }


@pytest.fixture
def mock_empty_vector_response() -> dict:
    """Mock instant query response with no samples."""
    return {"status": "success", "data": {"resultType": "vector", "result": []}}


@pytest.fixture
def mock_range_query_response() -> dict:
    """Mock range query response."""
    return {
        "status": "success",
        "data": {
            "resultType": "matrix",
            "result": [
                {
                    "metric": {"__name__": "up", "job": "prometheus"},
                    "values": [
                        [1704067200, "1"],
                        [1704067260, "1"],
                        [1704067320, "1"],
                    ],
                },
            ],
        },
    }


@pytest.fixture
def mock_alerts_response() -> dict:
    """Mock alerts response."""
    return {
        "status": "success",
        "data": {
            "alerts": [
                {
                    "labels": {
                        "alertname": "HighMemory",
                        "severity": "warning",
                        "instance": "localhost:9100",
                    },
                    "annotations": {"summary": "High memory usage"},
                    "state": "firing",
                    "activeAt": "2024-01-01T00:00:00Z",
                    "value": "85",
                },
                {
                    "labels": {
                        "alertname": "HighCPU",
                        "severity": "critical",
                        "instance": "localhost:9100",
                    },
                    "annotations": {"summary": "High CPU usage"},
                    "state": "pending",
                    "activeAt": "2024-01-01T01:00:00Z",
                    "value": "95",
                },
            ],
        },
    }


@pytest.fixture
def mock_targets_response() -> dict:
    """Mock targets response."""
    return {
        "status": "success",
        "data": {
            "activeTargets": [
                {
                    "labels": {"job": "prometheus", "instance": "localhost:9090"},
                    "scrapePool": "prometheus",
                    "scrapeUrl": "http://localhost:9090/metrics",
                    "lastError": "",
                    "health": "up",
                },
                {
                    "labels": {"job": "node", "instance": "localhost:9100"},
                    "scrapePool": "node",
                    "scrapeUrl": "http://localhost:9100/metrics",
                    "lastError": "connection refused",
                    "health": "down",
                },
            ],
            "droppedTargets": [],
        },
    }


@pytest.fixture
def mock_rules_response() -> dict:
    """Mock rules response."""
    return {
        "status": "success",
        "data": {
            "groups": [
                {
                    "name": "example",
                    "file": "/etc/prometheus/rules.yml",
                    "rules": [
                        {
                            "name": "HighMemory",
                            "type": "alerting",
                            "query": "node_memory_MemAvailable_bytes / node_memory_MemTotal_bytes < 0.2",
                            "health": "ok",
                            "state": "inactive",
                        },
                        {
                            "name": "instance:node_cpu:rate5m",
                            "type": "recording",
                            "query": "rate(node_cpu_seconds_total[5m])",
                            "health": "ok",
                        },
                    ],
                },
            ],
        },
    }


@pytest.fixture
def mock_labels_response() -> dict:
    """Mock labels response."""
    return {
        "status": "success",
        "data": ["__name__", "instance", "job", "severity"],
    }


@pytest.fixture
def mock_label_values_response() -> dict:
    """Mock label values response."""
    return {
        "status": "success",
        "data": ["prometheus", "node", "alertmanager"],
    }


@pytest.fixture
def mock_series_response() -> dict:
    """Mock series response."""
    return {
        "status": "success",
        "data": [
            {"__name__": "up", "job": "prometheus", "instance": "localhost:9090"},
            {"__name__": "up", "job": "node", "instance": "localhost:9100"},
        ],
    }


@pytest.fixture
def mock_metadata_response() -> dict:
    """Mock metadata response."""
    return {
        "status": "success",
        "data": {
            "up": [
                {
                    "type": "gauge",
                    "help": "1 if the target is up, 0 otherwise",
                    "unit": "",
                },
            ],
        },
    }


@pytest.fixture
def mock_build_info_response() -> dict:
    """Mock build info response."""
    return {
        "status": "success",
        "data": {
            "version": "2.48.0",
            "revision": "abcdef123456",
            "branch": "HEAD",
            "buildUser": "root@buildhost",
            "buildDate": "20240101-00:00:00",
            "goVersion": "go1.21.5",
        },
    }
