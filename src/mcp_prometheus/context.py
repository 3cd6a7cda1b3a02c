"""
Shared server state handed to every tool handler.
"""

from __future__ import annotations

import threading
from typing import Any, Optional

import structlog

from mcp_prometheus.config import PrometheusConfig, get_prometheus_config


class ServerContext:
    """
    Read-mostly configuration shared by concurrent tool calls.

    Holds the base Prometheus connection config, the debug flag and the
    logger. All access goes through a lock.
    """

    def __init__(
        self,
        prometheus_config: Optional[PrometheusConfig] = None,
        debug: bool = False,
        logger: Optional[Any] = None,
    ) -> None:
        self._lock = threading.RLock()
        self._prometheus_config = prometheus_config or get_prometheus_config()
        self._debug = debug
        self._logger = logger or structlog.get_logger("mcp_prometheus")
        self._closed = False

    @property
    def prometheus_config(self) -> PrometheusConfig:
        with self._lock:
            return self._prometheus_config

    @property
    def logger(self) -> Any:
        with self._lock:
            return self._logger

    @property
    def debug(self) -> bool:
        with self._lock:
            return self._debug

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def shutdown(self) -> None:
        """Mark the context closed."""
        with self._lock:
            self._closed = True
