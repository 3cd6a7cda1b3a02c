"""
Request authentication layers for the Prometheus HTTP client.

Layers are httpx ``Auth`` flows that wrap one another. The chain is built
innermost-first: the auth layer (bearer token or basic auth, never both)
sits directly on the transport, and the org-id layer wraps it.
"""

from __future__ import annotations

from typing import Generator, Optional

import httpx
import structlog

from mcp_prometheus.config import PrometheusConfig

logger = structlog.get_logger(__name__)

ORG_ID_HEADER = "X-Scope-OrgID"


class BearerTokenAuth(httpx.Auth):
    """Adds an ``Authorization: Bearer`` header."""

    def __init__(self, token: str) -> None:
        self.token = token

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        request.headers["Authorization"] = f"Bearer {self.token}"
        yield request


class OrgIDAuth(httpx.Auth):
    """Adds the multi-tenant org-id header, then defers to the wrapped layer."""

    def __init__(self, org_id: str, inner: Optional[httpx.Auth] = None) -> None:
        self.org_id = org_id
        self.inner = inner

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        request.headers[ORG_ID_HEADER] = self.org_id
        if self.inner is None:
            yield request
        else:
            yield from self.inner.auth_flow(request)


def build_auth(config: PrometheusConfig) -> Optional[httpx.Auth]:
    """
    Compose the auth chain for a connection config.

    Bearer token wins over basic auth; the org-id layer is added on top of
    whichever was chosen.

    Returns:
        The outermost auth layer, or None when nothing needs to be added
    """
    auth: Optional[httpx.Auth] = None

    if config.token:
        auth = BearerTokenAuth(config.token.get_secret_value())
        logger.debug("Using bearer token authentication")
    elif config.username and config.password:
        auth = httpx.BasicAuth(config.username, config.password.get_secret_value())
        logger.debug("Using basic authentication", username=config.username)
    else:
        logger.debug("No authentication configured")

    if config.org_id:
        auth = OrgIDAuth(config.org_id, inner=auth)
        logger.debug("Using organization ID", org_id=config.org_id)

    return auth
