"""
Custom exceptions for the Prometheus MCP tools.
"""

from __future__ import annotations


class PrometheusMCPError(Exception):
    """Base exception for all mcp-prometheus errors."""

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - Details: {self.details}"
        return self.message


class ConfigurationError(PrometheusMCPError):
    """Raised when no usable Prometheus configuration can be resolved."""

    pass


class ParameterError(PrometheusMCPError):
    """Raised when a tool parameter is missing or has the wrong type."""

    def __init__(self, message: str, parameter: str | None = None) -> None:
        super().__init__(message)
        self.parameter = parameter


class PrometheusConnectionError(PrometheusMCPError):
    """Raised when connection to Prometheus fails."""

    pass


class PrometheusTimeoutError(PrometheusMCPError):
    """Raised when a request to Prometheus times out."""

    pass


class PrometheusAPIError(PrometheusMCPError):
    """Raised when the Prometheus API returns an error."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error_type: str | None = None,
        details: dict | None = None,
    ) -> None:
        super().__init__(message, details)
        self.status_code = status_code
        self.error_type = error_type


class PrometheusQueryError(PrometheusAPIError):
    """Raised when a PromQL query is invalid or fails."""

    pass
