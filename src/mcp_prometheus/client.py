"""
Prometheus HTTP API client and the per-call client factory.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any, Optional, Union
from urllib.parse import quote

import httpx
import structlog
from dateutil import parser as date_parser
from pydantic import ValidationError

from mcp_prometheus import __version__
from mcp_prometheus.auth import build_auth
from mcp_prometheus.config import PrometheusConfig
from mcp_prometheus.context import ServerContext
from mcp_prometheus.exceptions import (
    ConfigurationError,
    PrometheusAPIError,
    PrometheusConnectionError,
    PrometheusQueryError,
    PrometheusTimeoutError,
)
from mcp_prometheus.models import ListResult, QueryOptions, QueryResult

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT = 30.0
RANGE_QUERY_TIMEOUT = 60.0

_DURATION_RE = re.compile(r"^(\d+(ms|s|m|h|d|w|y))+$")


def parse_time(value: Union[str, datetime, None]) -> Optional[str]:
    """
    Convert a time specification to a Prometheus Unix timestamp string.

    Supports RFC3339/ISO 8601, Unix timestamps, ``now`` and datetime objects.

    Raises:
        PrometheusQueryError: If the value cannot be parsed
    """
    if value is None or value == "":
        return None

    if isinstance(value, datetime):
        return str(value.timestamp())

    text = str(value).strip()

    if text.lower() == "now":
        return str(datetime.now(timezone.utc).timestamp())

    try:
        float(text)
        return text
    except ValueError:
        pass

    try:
        parsed = date_parser.isoparse(text)
    except (ValueError, OverflowError) as e:
        raise PrometheusQueryError(f"Invalid time format: {text}") from e

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return str(parsed.timestamp())


def validate_step(step: str) -> str:
    """Accept a Prometheus duration (``1m``, ``1h30m``) or a number of seconds."""
    step = step.strip()
    try:
        if float(step) > 0:
            return step
    except ValueError:
        if _DURATION_RE.match(step):
            return step
    raise PrometheusQueryError(f"Invalid step duration: {step}")


class PrometheusClient:
    """
    Async Prometheus HTTP API client.

    One instance serves one tool call: it is built from a resolved
    connection config and closed when the call completes.

    Example:
        ```python
        async with PrometheusClient(config) as client:
            result = await client.query("up")
        ```
    """

    def __init__(self, config: PrometheusConfig) -> None:
        if not config.url:
            raise ConfigurationError("Prometheus URL is not configured")
        self.config = config
        self._client: Optional[httpx.AsyncClient] = None
        self._log = logger.bind(prometheus_url=config.url)

    async def __aenter__(self) -> "PrometheusClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def connect(self) -> None:
        """Create the underlying HTTP client."""
        if self._client is not None:
            return

        self._client = httpx.AsyncClient(
            base_url=self.config.url,
            timeout=httpx.Timeout(DEFAULT_TIMEOUT),
            auth=build_auth(self.config),
            headers={
                "Accept": "application/json",
                "User-Agent": f"mcp-prometheus/{__version__}",
            },
        )
        self._log.debug("Prometheus client created", org_id=self.config.org_id)

    async def close(self) -> None:
        """Close the connection."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]] = None,
        data: Optional[dict[str, Any]] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> dict[str, Any]:
        """
        Make an HTTP request to the Prometheus API.

        Args:
            method: HTTP method
            path: API path
            params: Query parameters
            data: Form data for POST requests
            timeout: Per-request timeout in seconds

        Returns:
            Decoded API response envelope

        Raises:
            PrometheusAPIError: On API errors
            PrometheusConnectionError: On connection errors
            PrometheusTimeoutError: On timeout
        """
        if self._client is None:
            await self.connect()

        assert self._client is not None

        log = self._log.bind(method=method, path=path)

        try:
            response = await self._client.request(
                method=method,
                url=path,
                params=params,
                data=data,
                timeout=timeout,
            )
        except httpx.TimeoutException as e:
            log.error("Request timeout", error=str(e))
            raise PrometheusTimeoutError(f"Request timeout: {e}") from e
        except httpx.TransportError as e:
            log.error("Connection error", error=str(e))
            raise PrometheusConnectionError(f"Connection error: {e}") from e

        if response.status_code >= 400:
            error_detail = response.text
            error_type = None
            try:
                error_json = response.json()
                if isinstance(error_json, dict) and "error" in error_json:
                    error_detail = error_json["error"]
                    error_type = error_json.get("errorType")
            except ValueError:
                pass

            log.error(
                "API error",
                status_code=response.status_code,
                error=error_detail,
            )

            if response.status_code in (400, 422):
                raise PrometheusQueryError(
                    f"Bad request: {error_detail}",
                    status_code=response.status_code,
                    error_type=error_type,
                )
            elif response.status_code == 401:
                raise PrometheusAPIError(
                    f"Authentication failed: {error_detail}",
                    status_code=401,
                )
            elif response.status_code == 403:
                raise PrometheusAPIError(f"Access denied: {error_detail}", status_code=403)
            elif response.status_code == 503:
                raise PrometheusAPIError(
                    f"Service unavailable: {error_detail}", status_code=503
                )
            else:
                raise PrometheusAPIError(
                    f"HTTP {response.status_code}: {error_detail}",
                    status_code=response.status_code,
                    error_type=error_type,
                )

        try:
            result = response.json()
        except ValueError as e:
            log.error("Failed to parse response", error=str(e))
            raise PrometheusAPIError(f"Invalid JSON response: {e}") from e

        if result.get("status") == "error":
            error_type = result.get("errorType", "unknown")
            error_msg = result.get("error", "Unknown error")
            log.error("Prometheus error", error_type=error_type, error=error_msg)
            raise PrometheusQueryError(f"{error_type}: {error_msg}", error_type=error_type)

        warnings = result.get("warnings") or []
        if warnings:
            log.warning("Prometheus returned warnings", warnings=warnings)

        return result

    @staticmethod
    def _filter_params(
        start_time: str = "",
        end_time: str = "",
        matches: Optional[list[str]] = None,
        limit: str = "",
    ) -> dict[str, Any]:
        params: dict[str, Any] = {}
        if start_time:
            params["start"] = parse_time(start_time)
        if end_time:
            params["end"] = parse_time(end_time)
        if matches:
            params["match[]"] = matches
        if limit:
            params["limit"] = limit
        return params

    # ==========================================================================
    # Query API
    # ==========================================================================

    async def query(
        self,
        query: str,
        time: str = "",
        options: Optional[QueryOptions] = None,
    ) -> QueryResult:
        """
        Execute an instant PromQL query.

        Args:
            query: PromQL expression
            time: Evaluation timestamp (default: now)
            options: Optional timeout/limit/stats/lookback_delta modifiers

        Returns:
            QueryResult with result type, result and warnings
        """
        data: dict[str, Any] = {"query": query}
        if time:
            data["time"] = parse_time(time)
        if options is not None:
            data.update(options.to_params())

        self._log.debug("Executing instant query", query=query)
        response = await self._request("POST", "/api/v1/query", data=data)
        payload = response.get("data") or {}
        return QueryResult(
            result_type=payload.get("resultType", "unknown"),
            result=payload.get("result"),
            warnings=response.get("warnings") or [],
        )

    async def query_range(
        self,
        query: str,
        start: str,
        end: str,
        step: str,
        options: Optional[QueryOptions] = None,
    ) -> QueryResult:
        """
        Execute a range PromQL query.

        Example:
            ```python
            result = await client.query_range(
                "rate(http_requests_total[5m])",
                start="2024-01-01T00:00:00Z",
                end="2024-01-01T01:00:00Z",
                step="1m",
            )
            ```
        """
        data: dict[str, Any] = {
            "query": query,
            "start": parse_time(start),
            "end": parse_time(end),
            "step": validate_step(step),
        }
        if options is not None:
            data.update(options.to_params())

        self._log.debug(
            "Executing range query",
            query=query,
            start=data["start"],
            end=data["end"],
            step=data["step"],
        )
        response = await self._request(
            "POST", "/api/v1/query_range", data=data, timeout=RANGE_QUERY_TIMEOUT
        )
        payload = response.get("data") or {}
        return QueryResult(
            result_type=payload.get("resultType", "unknown"),
            result=payload.get("result"),
            warnings=response.get("warnings") or [],
        )

    async def query_exemplars(self, query: str, start: str, end: str) -> list[dict[str, Any]]:
        """Query exemplars for a series selector."""
        data = {
            "query": query,
            "start": parse_time(start),
            "end": parse_time(end),
        }
        response = await self._request("POST", "/api/v1/query_exemplars", data=data)
        return response.get("data") or []

    # ==========================================================================
    # Metadata API
    # ==========================================================================

    async def list_metrics(
        self,
        start_time: str = "",
        end_time: str = "",
        matches: Optional[list[str]] = None,
    ) -> ListResult:
        """List all metric names (values of the ``__name__`` label)."""
        return await self.list_label_values(
            "__name__", start_time=start_time, end_time=end_time, matches=matches
        )

    async def list_label_names(
        self,
        start_time: str = "",
        end_time: str = "",
        matches: Optional[list[str]] = None,
        limit: str = "",
    ) -> ListResult:
        """Get label names, optionally filtered by time range and series selectors."""
        data = self._filter_params(start_time, end_time, matches, limit)
        response = await self._request("POST", "/api/v1/labels", data=data)
        return ListResult(
            items=response.get("data") or [],
            warnings=response.get("warnings") or [],
        )

    async def list_label_values(
        self,
        label: str,
        start_time: str = "",
        end_time: str = "",
        matches: Optional[list[str]] = None,
        limit: str = "",
    ) -> ListResult:
        """Get the values of a single label."""
        params = self._filter_params(start_time, end_time, matches, limit)
        # Dots are escaped too so that "." and ".." are not read as path segments.
        segment = quote(label, safe="").replace(".", "%2E")
        response = await self._request(
            "GET", f"/api/v1/label/{segment}/values", params=params
        )
        return ListResult(
            items=response.get("data") or [],
            warnings=response.get("warnings") or [],
        )

    async def find_series(
        self,
        matches: list[str],
        start_time: str = "",
        end_time: str = "",
        limit: str = "",
    ) -> ListResult:
        """Find series matching label matchers."""
        data = self._filter_params(start_time, end_time, matches, limit)
        response = await self._request("POST", "/api/v1/series", data=data)
        return ListResult(
            items=response.get("data") or [],
            warnings=response.get("warnings") or [],
        )

    async def get_metric_metadata(self, metric: str = "", limit: str = "") -> dict[str, Any]:
        """
        Get metric metadata (type, help, unit).

        Returns:
            Dict mapping metric names to lists of metadata entries
        """
        params: dict[str, Any] = {}
        if metric:
            params["metric"] = metric
        if limit:
            params["limit"] = limit

        response = await self._request("GET", "/api/v1/metadata", params=params)
        return response.get("data") or {}

    async def get_targets_metadata(
        self,
        match_target: str = "",
        metric: str = "",
        limit: str = "",
    ) -> list[dict[str, Any]]:
        """Get metadata about metrics scraped from matching targets."""
        params: dict[str, Any] = {}
        if match_target:
            params["match_target"] = match_target
        if metric:
            params["metric"] = metric
        if limit:
            params["limit"] = limit

        response = await self._request("GET", "/api/v1/targets/metadata", params=params)
        return response.get("data") or []

    # ==========================================================================
    # Targets, rules and alerts
    # ==========================================================================

    async def get_targets(self) -> dict[str, Any]:
        """
        Get information about scrape targets.

        Returns:
            Dict with 'activeTargets' and 'droppedTargets'
        """
        response = await self._request("GET", "/api/v1/targets")
        return response.get("data") or {}

    async def get_rules(self) -> dict[str, Any]:
        """Get alerting and recording rules."""
        response = await self._request("GET", "/api/v1/rules")
        return response.get("data") or {}

    async def get_alerts(self) -> list[dict[str, Any]]:
        """Get active alerts."""
        response = await self._request("GET", "/api/v1/alerts")
        return (response.get("data") or {}).get("alerts", [])

    async def get_alertmanagers(self) -> dict[str, Any]:
        """Get Alertmanager discovery information."""
        response = await self._request("GET", "/api/v1/alertmanagers")
        return response.get("data") or {}

    # ==========================================================================
    # Status API
    # ==========================================================================

    async def get_config(self) -> str:
        """Get the loaded Prometheus configuration as YAML."""
        response = await self._request("GET", "/api/v1/status/config")
        return (response.get("data") or {}).get("yaml", "")

    async def get_flags(self) -> dict[str, str]:
        """Get Prometheus command-line flags."""
        response = await self._request("GET", "/api/v1/status/flags")
        return response.get("data") or {}

    async def get_runtime_info(self) -> dict[str, Any]:
        """Get Prometheus runtime information."""
        response = await self._request("GET", "/api/v1/status/runtimeinfo")
        return response.get("data") or {}

    async def get_build_info(self) -> dict[str, str]:
        """Get Prometheus build information (version, revision, goVersion...)."""
        response = await self._request("GET", "/api/v1/status/buildinfo")
        return response.get("data") or {}

    async def get_tsdb_stats(self, limit: str = "") -> dict[str, Any]:
        """Get TSDB cardinality statistics."""
        params: dict[str, Any] = {}
        if limit:
            params["limit"] = limit
        response = await self._request("GET", "/api/v1/status/tsdb", params=params)
        return response.get("data") or {}


def resolve_connection_config(
    base: PrometheusConfig,
    prometheus_url: str = "",
    org_id: str = "",
) -> PrometheusConfig:
    """
    Merge per-call overrides into the base connection config.

    PROMETHEUS_URL and PROMETHEUS_ORGID from the environment cannot be
    overridden by tool parameters. Credentials always come from the base config.

    Raises:
        ConfigurationError: If no URL resolves, or the resolved URL is invalid
    """
    try:
        env = PrometheusConfig()
    except ValidationError as e:
        raise ConfigurationError(
            f"invalid Prometheus environment configuration: {_first_error(e)}"
        ) from e

    url = env.url or prometheus_url or base.url
    if not url:
        raise ConfigurationError(
            "prometheus URL is required: either set PROMETHEUS_URL environment "
            "variable or provide prometheus_url parameter"
        )

    try:
        return PrometheusConfig(
            url=url,
            username=base.username,
            password=base.password,
            token=base.token,
            org_id=env.org_id or org_id or base.org_id,
        )
    except ValidationError as e:
        raise ConfigurationError(f"invalid Prometheus URL {url!r}: {_first_error(e)}") from e


def _first_error(error: ValidationError) -> str:
    details = error.errors()
    if not details:
        return str(error)
    return details[0]["msg"].removeprefix("Value error, ")


def create_client(
    context: ServerContext,
    prometheus_url: str = "",
    org_id: str = "",
) -> PrometheusClient:
    """Build a client for one tool call from the server context and overrides."""
    config = resolve_connection_config(context.prometheus_config, prometheus_url, org_id)
    context.logger.debug(
        "Creating Prometheus client",
        url=config.url,
        org_id=config.org_id,
        authentication=config.auth_method,
    )
    return PrometheusClient(config)
