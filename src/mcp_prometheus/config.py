"""
Configuration management for mcp-prometheus.

Prometheus connection settings come from ``PROMETHEUS_*`` environment
variables (or a ``.env`` file); server settings come from CLI flags with
``MCP_PROMETHEUS_*`` environment fallbacks.
"""

from __future__ import annotations

from enum import Enum
from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class TransportType(str, Enum):
    """Transport type options."""

    STDIO = "stdio"
    SSE = "sse"
    STREAMABLE_HTTP = "streamable-http"

    @classmethod
    def values(cls) -> list[str]:
        """Get all valid transport values."""
        return [transport.value for transport in cls]


class LogFormat(str, Enum):
    """Log renderer options."""

    TEXT = "text"
    JSON = "json"


class PrometheusConfig(BaseSettings):
    """
    Prometheus connection configuration.

    Example:
        ```bash
        export PROMETHEUS_URL="http://prometheus:9090"
        export PROMETHEUS_TOKEN="my-token"
        export PROMETHEUS_ORGID="tenant-1"
        ```
    """

    model_config = SettingsConfigDict(
        env_prefix="PROMETHEUS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    url: str = Field(
        default="",
        description="Prometheus server URL",
        examples=["http://prometheus:9090", "https://mimir.example.com/prometheus"],
    )

    username: Optional[str] = Field(
        default=None,
        description="Username for basic authentication",
    )

    password: Optional[SecretStr] = Field(
        default=None,
        description="Password for basic authentication",
    )

    token: Optional[SecretStr] = Field(
        default=None,
        description="Bearer token for token-based authentication",
    )

    org_id: Optional[str] = Field(
        default=None,
        # An alias bypasses env_prefix, so the env name is spelled out in full.
        validation_alias=AliasChoices("prometheus_orgid"),
        description="Organization ID sent as X-Scope-OrgID for multi-tenant backends",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate and normalize Prometheus URL."""
        v = v.strip().rstrip("/")
        if v and not v.startswith(("http://", "https://")):
            raise ValueError("URL must start with http:// or https://")
        return v

    @property
    def auth_method(self) -> str:
        """Name of the authentication layer this config selects."""
        if self.token:
            return "bearer_token"
        if self.username and self.password:
            return "basic_auth"
        return "none"


class ServerSettings(BaseSettings):
    """MCP server settings (transport, endpoints, logging)."""

    model_config = SettingsConfigDict(
        env_prefix="MCP_PROMETHEUS_",
        case_sensitive=False,
        extra="ignore",
    )

    transport: TransportType = Field(
        default=TransportType.STDIO,
        description="Transport type for the MCP server",
    )

    http_addr: str = Field(
        default=":8080",
        description="HTTP listen address for sse and streamable-http transports",
    )

    sse_endpoint: str = Field(default="/sse", description="SSE endpoint path")

    message_endpoint: str = Field(
        default="/message",
        description="Message endpoint path for the sse transport",
    )

    http_endpoint: str = Field(
        default="/mcp",
        description="Endpoint path for the streamable-http transport",
    )

    debug: bool = Field(default=False, description="Enable debug logging")

    log_format: LogFormat = Field(
        default=LogFormat.TEXT,
        description="Log format (text or json)",
    )

    @field_validator("sse_endpoint", "message_endpoint", "http_endpoint")
    @classmethod
    def validate_endpoint(cls, v: str) -> str:
        """Endpoint paths must be absolute."""
        if not v.startswith("/"):
            raise ValueError(f"Endpoint path must start with '/': {v}")
        return v

    @field_validator("http_addr")
    @classmethod
    def validate_http_addr(cls, v: str) -> str:
        """Address must be host:port or :port."""
        host, sep, port = v.rpartition(":")
        if not sep or not port.isdigit() or not 0 < int(port) < 65536:
            raise ValueError(f"Invalid HTTP address (expected host:port): {v}")
        return v

    def bind_address(self) -> tuple[str, int]:
        """Split http_addr into a (host, port) pair, defaulting host to 0.0.0.0."""
        host, _, port = self.http_addr.rpartition(":")
        return host.strip("[]") or "0.0.0.0", int(port)


@lru_cache
def get_prometheus_config() -> PrometheusConfig:
    """
    Get cached Prometheus configuration loaded from the environment.

    Returns:
        PrometheusConfig: Connection defaults
    """
    return PrometheusConfig()


def clear_settings_cache() -> None:
    """Clear the settings cache. Useful for testing."""
    get_prometheus_config.cache_clear()
