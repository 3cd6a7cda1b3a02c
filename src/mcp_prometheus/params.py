"""
Helpers for pulling typed values out of loosely-typed tool arguments.
"""

from __future__ import annotations

from typing import Any, Mapping

from mcp_prometheus.exceptions import ParameterError


def extract_params(arguments: Any) -> dict[str, Any]:
    """Return the argument map of a tool call, or an empty dict."""
    if isinstance(arguments, Mapping):
        return dict(arguments)
    return {}


def get_string(params: Mapping[str, Any], key: str, required: bool = False) -> str:
    """
    Get a string parameter.

    Numbers are coerced to strings. Missing or empty values yield ``""``
    unless ``required`` is set.

    Raises:
        ParameterError: If the value has the wrong type, or is required and absent
    """
    value = params.get(key)

    if isinstance(value, bool):
        value = str(value).lower()
    elif isinstance(value, (int, float)):
        value = str(value)
    elif value is not None and not isinstance(value, str):
        raise ParameterError(
            f"{key} parameter is required and must be a string"
            if required
            else f"{key} parameter must be a string",
            parameter=key,
        )

    if not value:
        if required:
            raise ParameterError(
                f"{key} parameter is required and must be a string", parameter=key
            )
        return ""
    return value


def get_string_array(params: Mapping[str, Any], key: str, required: bool = False) -> list[str]:
    """
    Get an array-of-strings parameter.

    Non-string items are dropped; a bare string becomes a one-element list.

    Raises:
        ParameterError: If the value is not an array, or is required and empty
    """
    value = params.get(key)

    if value is None:
        items: list[str] = []
    elif isinstance(value, str):
        items = [value] if value else []
    elif isinstance(value, (list, tuple)):
        items = [item for item in value if isinstance(item, str) and item]
    else:
        raise ParameterError(
            f"{key} parameter must be an array of strings", parameter=key
        )

    if required and not items:
        raise ParameterError(
            f"{key} parameter is required and must be an array of strings",
            parameter=key,
        )
    return items


def get_limit(params: Mapping[str, Any], key: str = "limit") -> str:
    """Get a non-negative integer limit, as a string ready for the API."""
    value = get_string(params, key)
    if value and (not value.isdigit()):
        raise ParameterError(
            f"{key} parameter must be a non-negative integer, got {value!r}",
            parameter=key,
        )
    return value


def is_unlimited(params: Mapping[str, Any]) -> bool:
    """True when the caller explicitly asked for untruncated output."""
    value = params.get("unlimited")
    if isinstance(value, bool):
        return value
    return isinstance(value, str) and value.strip().lower() == "true"
