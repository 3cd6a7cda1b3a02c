"""
Value objects passed between the tool handlers and the Prometheus client.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class QueryOptions(BaseModel):
    """Optional modifiers attached to an instant or range query."""

    timeout: str = ""
    limit: str = ""
    stats: str = ""
    lookback_delta: str = ""

    def is_empty(self) -> bool:
        return not (self.timeout or self.limit or self.stats or self.lookback_delta)

    def to_params(self) -> dict[str, str]:
        """Render the set options as Prometheus API form parameters."""
        return {key: value for key, value in self.model_dump().items() if value}


class QueryResult(BaseModel):
    """Result of an instant or range query."""

    result_type: str
    result: Any = None
    warnings: list[str] = Field(default_factory=list)


class ListResult(BaseModel):
    """Result of a discovery call returning a list (labels, values, series)."""

    items: list[Any] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
