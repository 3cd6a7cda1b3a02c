"""
Prometheus MCP tools.

Every tool takes the loosely-typed argument map of an MCP call, builds a
Prometheus client for that call and renders the API response as text.

Tools:
- Queries: execute_query, execute_range_query, query_exemplars
- Discovery: list_metrics, get_metric_metadata, list_label_names,
  list_label_values, find_series, get_targets_metadata
- Status: get_targets, get_build_info, get_runtime_info, get_flags,
  get_config, get_tsdb_stats
- Alerting: get_alerts, get_alertmanagers, get_rules
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

import structlog
from mcp import types

from mcp_prometheus.client import PrometheusClient, create_client
from mcp_prometheus.context import ServerContext
from mcp_prometheus.exceptions import ParameterError, PrometheusMCPError
from mcp_prometheus.formatting import (
    LABEL_VALUES_DISPLAY_LIMIT,
    METRICS_DISPLAY_LIMIT,
    SERIES_DISPLAY_LIMIT,
    format_numbered_list,
    format_query_result,
    format_targets,
    format_titled,
)
from mcp_prometheus.models import QueryOptions
from mcp_prometheus.params import (
    extract_params,
    get_limit,
    get_string,
    get_string_array,
    is_unlimited,
)

logger = structlog.get_logger(__name__)

Handler = Callable[[PrometheusClient, dict[str, Any], ServerContext], Awaitable[str]]


# ==========================================================================
# Input schema helpers
# ==========================================================================

def string_param(description: str) -> dict[str, Any]:
    return {"type": "string", "description": description}


def array_param(description: str) -> dict[str, Any]:
    return {"type": "array", "items": {"type": "string"}, "description": description}


CONNECTION_PARAMS = {
    "prometheus_url": string_param(
        "Prometheus server URL (e.g., 'http://localhost:8080/prometheus')"
    ),
    "org_id": string_param("Organization ID for multi-tenant Prometheus"),
}

QUERY_ENHANCEMENT_PARAMS = {
    "timeout": string_param("Query timeout (e.g., '30s', '1m', '5m')"),
    "limit": string_param("Maximum number of returned entries"),
    "stats": string_param("Include query statistics: 'all'"),
    "lookback_delta": string_param("Query lookback delta (e.g., '5m')"),
    "unlimited": string_param(
        "Set to 'true' to get unlimited output "
        "(WARNING: may be very large and impact performance)"
    ),
}

TIME_FILTERING_PARAMS = {
    "start_time": string_param("Start time for filtering (RFC3339)"),
    "end_time": string_param("End time for filtering (RFC3339)"),
}

LABEL_MATCHING_PARAMS = {
    "matches": array_param("Array of label matchers to filter series"),
}


@dataclass
class PrometheusTool:
    """A registered tool: its schema, its handler and how it reports failure."""

    name: str
    description: str
    handler: Handler
    # Completes "Error <failure>: ..."; may reference tool parameters by name.
    failure: str
    properties: dict[str, Any] = field(default_factory=dict)
    required: list[str] = field(default_factory=list)

    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {**self.properties, **CONNECTION_PARAMS},
            "required": list(self.required),
        }

    def to_mcp_tool(self) -> types.Tool:
        return types.Tool(
            name=self.name,
            description=self.description,
            inputSchema=self.input_schema(),
        )

    def failure_message(self, params: dict[str, Any], error: Exception) -> str:
        context = _BlankDefaults({k: v for k, v in params.items() if isinstance(v, str)})
        return f"Error {self.failure.format_map(context)}: {error}"


class _BlankDefaults(dict):
    def __missing__(self, key: str) -> str:
        return ""


def _text_result(text: str, is_error: bool = False) -> types.CallToolResult:
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        isError=is_error,
    )


class ToolRegistry:
    """
    Named tools bound to a server context.

    ``call`` never raises for tool-level failures: every outcome is a
    ``CallToolResult``, with ``isError`` set when the call failed.
    """

    def __init__(self, context: ServerContext) -> None:
        self.context = context
        self._tools: dict[str, PrometheusTool] = {}

    def register(
        self,
        name: str,
        description: str,
        handler: Handler,
        failure: str,
        properties: Optional[dict[str, Any]] = None,
        required: Optional[list[str]] = None,
    ) -> PrometheusTool:
        if name in self._tools:
            raise ValueError(f"Tool already registered: {name}")
        tool = PrometheusTool(
            name=name,
            description=description,
            handler=handler,
            failure=failure,
            properties=properties or {},
            required=required or [],
        )
        self._tools[name] = tool
        return tool

    def get(self, name: str) -> Optional[PrometheusTool]:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def list_tools(self) -> list[types.Tool]:
        return [tool.to_mcp_tool() for tool in self._tools.values()]

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    async def call(self, name: str, arguments: Any) -> types.CallToolResult:
        """
        Run a tool call end to end.

        Args:
            name: Tool name
            arguments: Raw argument map from the MCP request

        Returns:
            Text result, or an error result describing the failure
        """
        tool = self._tools.get(name)
        if tool is None:
            return _text_result(f"Error: unknown tool '{name}'", is_error=True)

        params = extract_params(arguments)
        log = self.context.logger.bind(tool=name)

        try:
            client = create_client(
                self.context,
                prometheus_url=get_string(params, "prometheus_url"),
                org_id=get_string(params, "org_id"),
            )
        except Exception as e:
            log.error("Failed to create Prometheus client", error=str(e))
            return _text_result(f"Error creating Prometheus client: {e}", is_error=True)

        try:
            async with client:
                text = await tool.handler(client, params, self.context)
        except ParameterError as e:
            log.debug("Invalid tool parameters", parameter=e.parameter, error=str(e))
            return _text_result(f"Error: {e}", is_error=True)
        except PrometheusMCPError as e:
            log.error("Tool call failed", error=str(e))
            return _text_result(tool.failure_message(params, e), is_error=True)
        except Exception as e:
            log.exception("Unexpected error in tool call")
            return _text_result(tool.failure_message(params, e), is_error=True)

        return _text_result(text)


# ==========================================================================
# Handlers
# ==========================================================================

def _query_options(params: dict[str, Any]) -> Optional[QueryOptions]:
    options = QueryOptions(
        timeout=get_string(params, "timeout"),
        limit=get_limit(params),
        stats=get_string(params, "stats"),
        lookback_delta=get_string(params, "lookback_delta"),
    )
    return None if options.is_empty() else options


async def handle_execute_query(
    client: PrometheusClient, params: dict[str, Any], context: ServerContext
) -> str:
    query = get_string(params, "query", required=True)
    time = get_string(params, "time")
    options = _query_options(params)
    unlimited = is_unlimited(params)

    context.logger.debug(
        "Executing PromQL query",
        query=query,
        time=time,
        options=options.to_params() if options else {},
        unlimited=unlimited,
    )

    result = await client.query(query, time=time, options=options)
    return format_query_result(result.result_type, result.result, unlimited)


async def handle_execute_range_query(
    client: PrometheusClient, params: dict[str, Any], context: ServerContext
) -> str:
    query = get_string(params, "query", required=True)
    start = get_string(params, "start", required=True)
    end = get_string(params, "end", required=True)
    step = get_string(params, "step", required=True)
    options = _query_options(params)
    unlimited = is_unlimited(params)

    context.logger.debug(
        "Executing PromQL range query",
        query=query,
        start=start,
        end=end,
        step=step,
        unlimited=unlimited,
    )

    result = await client.query_range(query, start, end, step, options=options)
    return format_query_result(result.result_type, result.result, unlimited)


async def handle_list_metrics(
    client: PrometheusClient, params: dict[str, Any], context: ServerContext
) -> str:
    result = await client.list_metrics(
        start_time=get_string(params, "start_time"),
        end_time=get_string(params, "end_time"),
        matches=get_string_array(params, "matches"),
    )
    return format_numbered_list(
        result.items,
        noun="metrics",
        empty_message="No metrics found",
        display_limit=METRICS_DISPLAY_LIMIT,
        warnings=result.warnings,
    )


async def handle_get_metric_metadata(
    client: PrometheusClient, params: dict[str, Any], context: ServerContext
) -> str:
    metric = get_string(params, "metric", required=True)
    metadata = await client.get_metric_metadata(metric, limit=get_limit(params))
    return format_titled(f"Metadata for metric '{metric}'", metadata)


async def handle_list_label_names(
    client: PrometheusClient, params: dict[str, Any], context: ServerContext
) -> str:
    result = await client.list_label_names(
        start_time=get_string(params, "start_time"),
        end_time=get_string(params, "end_time"),
        matches=get_string_array(params, "matches"),
        limit=get_limit(params),
    )
    return format_numbered_list(
        result.items,
        noun="label names",
        empty_message="No label names found",
        warnings=result.warnings,
    )


async def handle_list_label_values(
    client: PrometheusClient, params: dict[str, Any], context: ServerContext
) -> str:
    label = get_string(params, "label", required=True)
    result = await client.list_label_values(
        label,
        start_time=get_string(params, "start_time"),
        end_time=get_string(params, "end_time"),
        matches=get_string_array(params, "matches"),
        limit=get_limit(params),
    )
    return format_numbered_list(
        result.items,
        noun="values",
        empty_message=f"No values found for label '{label}'",
        header=f"Found {len(result.items)} values for label '{label}':",
        display_limit=LABEL_VALUES_DISPLAY_LIMIT,
        warnings=result.warnings,
    )


async def handle_find_series(
    client: PrometheusClient, params: dict[str, Any], context: ServerContext
) -> str:
    matches = get_string_array(params, "matches", required=True)
    result = await client.find_series(
        matches,
        start_time=get_string(params, "start_time"),
        end_time=get_string(params, "end_time"),
        limit=get_limit(params),
    )
    return format_numbered_list(
        result.items,
        noun="series",
        empty_message="No series found matching the given criteria",
        display_limit=SERIES_DISPLAY_LIMIT,
        warnings=result.warnings,
    )


async def handle_get_targets(
    client: PrometheusClient, params: dict[str, Any], context: ServerContext
) -> str:
    return format_targets(await client.get_targets())


async def handle_get_build_info(
    client: PrometheusClient, params: dict[str, Any], context: ServerContext
) -> str:
    return format_titled("Prometheus Build Information", await client.get_build_info())


async def handle_get_runtime_info(
    client: PrometheusClient, params: dict[str, Any], context: ServerContext
) -> str:
    return format_titled("Prometheus Runtime Information", await client.get_runtime_info())


async def handle_get_flags(
    client: PrometheusClient, params: dict[str, Any], context: ServerContext
) -> str:
    return format_titled("Prometheus Runtime Flags", await client.get_flags())


async def handle_get_config(
    client: PrometheusClient, params: dict[str, Any], context: ServerContext
) -> str:
    # The config is already YAML; show it as-is.
    return f"Prometheus Configuration:\n{await client.get_config()}"


async def handle_get_alerts(
    client: PrometheusClient, params: dict[str, Any], context: ServerContext
) -> str:
    return format_titled("Active Alerts", await client.get_alerts())


async def handle_get_alertmanagers(
    client: PrometheusClient, params: dict[str, Any], context: ServerContext
) -> str:
    return format_titled("AlertManager Discovery", await client.get_alertmanagers())


async def handle_get_rules(
    client: PrometheusClient, params: dict[str, Any], context: ServerContext
) -> str:
    return format_titled("Prometheus Rules", await client.get_rules())


async def handle_get_tsdb_stats(
    client: PrometheusClient, params: dict[str, Any], context: ServerContext
) -> str:
    stats = await client.get_tsdb_stats(limit=get_limit(params))
    return format_titled("TSDB Statistics", stats)


async def handle_query_exemplars(
    client: PrometheusClient, params: dict[str, Any], context: ServerContext
) -> str:
    query = get_string(params, "query", required=True)
    start = get_string(params, "start", required=True)
    end = get_string(params, "end", required=True)
    exemplars = await client.query_exemplars(query, start, end)
    return format_titled(f"Exemplars for query '{query}'", exemplars)


async def handle_get_targets_metadata(
    client: PrometheusClient, params: dict[str, Any], context: ServerContext
) -> str:
    metadata = await client.get_targets_metadata(
        match_target=get_string(params, "match_target"),
        metric=get_string(params, "metric"),
        limit=get_limit(params),
    )
    return format_titled("Targets Metadata", metadata)


# ==========================================================================
# Registration
# ==========================================================================

def register_prometheus_tools(registry: ToolRegistry) -> None:
    """Register all Prometheus tools with the registry."""

    # Queries
    registry.register(
        "execute_query",
        "Execute a PromQL instant query against Prometheus",
        handle_execute_query,
        failure="executing query",
        properties={
            "query": string_param("PromQL query string"),
            "time": string_param("Optional RFC3339 or Unix timestamp (default: current time)"),
            **QUERY_ENHANCEMENT_PARAMS,
        },
        required=["query"],
    )

    registry.register(
        "execute_range_query",
        "Execute a PromQL range query with start time, end time, and step interval",
        handle_execute_range_query,
        failure="executing range query",
        properties={
            "query": string_param("PromQL query string"),
            "start": string_param("Start time as RFC3339 or Unix timestamp"),
            "end": string_param("End time as RFC3339 or Unix timestamp"),
            "step": string_param("Query resolution step width (e.g., '15s', '1m', '1h')"),
            **QUERY_ENHANCEMENT_PARAMS,
        },
        required=["query", "start", "end", "step"],
    )

    # Metric discovery
    registry.register(
        "list_metrics",
        "List all available metrics in Prometheus",
        handle_list_metrics,
        failure="listing metrics",
        properties={**TIME_FILTERING_PARAMS, **LABEL_MATCHING_PARAMS},
    )

    registry.register(
        "get_metric_metadata",
        "Get metadata for a specific metric",
        handle_get_metric_metadata,
        failure="getting metadata for metric '{metric}'",
        properties={
            "metric": string_param("The name of the metric to retrieve metadata for"),
            "limit": string_param("Maximum number of metadata entries to return"),
        },
        required=["metric"],
    )

    # Labels and series
    registry.register(
        "list_label_names",
        "Get all available label names",
        handle_list_label_names,
        failure="listing label names",
        properties={
            **TIME_FILTERING_PARAMS,
            **LABEL_MATCHING_PARAMS,
            "limit": string_param("Maximum number of label names to return"),
        },
    )

    registry.register(
        "list_label_values",
        "Get values for a specific label",
        handle_list_label_values,
        failure="listing label values for '{label}'",
        properties={
            "label": string_param("The label name to get values for"),
            **TIME_FILTERING_PARAMS,
            **LABEL_MATCHING_PARAMS,
            "limit": string_param("Maximum number of label values to return"),
        },
        required=["label"],
    )

    registry.register(
        "find_series",
        "Find series by label matchers",
        handle_find_series,
        failure="finding series",
        properties={
            "matches": array_param(
                "Array of label matchers "
                "(e.g., ['{job=\"prometheus\"}', '{__name__=~\"http_.*\"}'])"
            ),
            **TIME_FILTERING_PARAMS,
            "limit": string_param("Maximum number of series to return"),
        },
        required=["matches"],
    )

    # Targets and server status
    registry.register(
        "get_targets",
        "Get information about all scrape targets",
        handle_get_targets,
        failure="getting targets",
    )
    registry.register(
        "get_build_info",
        "Get build information about the Prometheus server",
        handle_get_build_info,
        failure="getting build info",
    )
    registry.register(
        "get_runtime_info",
        "Get runtime information about the Prometheus server",
        handle_get_runtime_info,
        failure="getting runtime info",
    )
    registry.register(
        "get_flags",
        "Get runtime flags that Prometheus was launched with",
        handle_get_flags,
        failure="getting flags",
    )
    registry.register(
        "get_config",
        "Get Prometheus configuration",
        handle_get_config,
        failure="getting config",
    )

    # Alerting
    registry.register(
        "get_alerts",
        "Get active alerts",
        handle_get_alerts,
        failure="getting alerts",
    )
    registry.register(
        "get_alertmanagers",
        "Get AlertManager discovery information",
        handle_get_alertmanagers,
        failure="getting alert managers",
    )
    registry.register(
        "get_rules",
        "Get recording and alerting rules",
        handle_get_rules,
        failure="getting rules",
    )

    # Advanced
    registry.register(
        "get_tsdb_stats",
        "Get TSDB cardinality statistics",
        handle_get_tsdb_stats,
        failure="getting TSDB stats",
        properties={"limit": string_param("Maximum number of stats entries to return")},
    )

    registry.register(
        "query_exemplars",
        "Query exemplars for traces",
        handle_query_exemplars,
        failure="querying exemplars",
        properties={
            "query": string_param("PromQL query string to find exemplars for"),
            "start": string_param("Start time as RFC3339 or Unix timestamp"),
            "end": string_param("End time as RFC3339 or Unix timestamp"),
        },
        required=["query", "start", "end"],
    )

    registry.register(
        "get_targets_metadata",
        "Get metadata about metrics from specific targets",
        handle_get_targets_metadata,
        failure="getting targets metadata",
        properties={
            "match_target": string_param("Target matcher to filter targets"),
            "metric": string_param("Metric name to filter metadata for"),
            "limit": string_param("Maximum number of metadata entries to return"),
        },
    )

    logger.debug("Registered Prometheus tools", count=len(registry))
