"""
Text rendering of Prometheus API results for MCP tool responses.
"""

from __future__ import annotations

import json
from typing import Any, Sequence

MAX_RESULT_LENGTH = 50000

# How far back from the cut point we look for a line break.
NEWLINE_SEARCH_WINDOW = 1000

TRUNCATION_ADVICE = """

⚠️  RESULT TRUNCATED: The query returned a very large result (>50k characters).

💡 To optimize your query and get less output, consider:
   • Adding more specific label filters: {app="specific-app", namespace="specific-ns"}
   • Using aggregation functions: sum(), avg(), count(), etc.
   • Limiting time ranges for range queries
   • Using topk() or bottomk() to get only top/bottom N results
   • Filtering by specific metrics instead of using wildcards

🔧 To get the full untruncated result, add "unlimited": "true" to your query parameters, but be aware this may impact performance."""

UNLIMITED_WARNING = (
    "⚠️  WARNING: Unlimited output enabled - this response may be very large "
    "and could impact performance.\n\n"
)

METRICS_DISPLAY_LIMIT = 100
LABEL_VALUES_DISPLAY_LIMIT = 100
SERIES_DISPLAY_LIMIT = 50


def to_json(data: Any) -> str:
    """Serialize an API payload for display."""
    return json.dumps(data, indent=2, default=str, ensure_ascii=False)


def truncate_result(text: str) -> str:
    """
    Cut text longer than MAX_RESULT_LENGTH and append the truncation advice.

    The cut is moved back to the last newline when one falls within the
    trailing search window, so a metric is not split mid-line.
    """
    if len(text) <= MAX_RESULT_LENGTH:
        return text

    truncated = text[:MAX_RESULT_LENGTH]
    last_newline = truncated.rfind("\n")
    if last_newline > MAX_RESULT_LENGTH - NEWLINE_SEARCH_WINDOW:
        truncated = truncated[:last_newline]
    return truncated + TRUNCATION_ADVICE


def format_query_result(result_type: str, result: Any, unlimited: bool = False) -> str:
    """
    Format a query result, truncating it unless unlimited output was requested.

    Args:
        result_type: Prometheus result type (vector, matrix, scalar, string)
        result: The ``result`` field of the query response
        unlimited: Skip truncation and prepend a performance warning

    Returns:
        Text for the tool response
    """
    text = f"Query executed successfully.\nResult Type: {result_type}\nResult: {to_json(result)}"

    if unlimited:
        return UNLIMITED_WARNING + text

    return truncate_result(text)


def _append_warnings(text: str, warnings: Sequence[str]) -> str:
    if warnings:
        text += f"\nWarnings: {', '.join(warnings)}"
    return text


def format_numbered_list(
    items: Sequence[Any],
    *,
    noun: str,
    empty_message: str,
    header: str | None = None,
    display_limit: int | None = None,
    warnings: Sequence[str] = (),
) -> str:
    """
    Render items as a numbered list.

    Args:
        items: Entries to list; non-string entries are rendered as JSON
        noun: Plural noun used in the header and trailer ("metrics")
        empty_message: Text returned when there are no items
        header: Header override; defaults to "Found N <noun>:"
        display_limit: Maximum entries shown before a "... and N more" trailer
        warnings: API warnings appended at the end
    """
    if not items:
        return _append_warnings(empty_message, warnings)

    lines = [header or f"Found {len(items)} {noun}:"]
    for i, item in enumerate(items, start=1):
        rendered = item if isinstance(item, str) else json.dumps(item, default=str, sort_keys=True)
        lines.append(f"{i}. {rendered}")
        if display_limit is not None and i >= display_limit:
            remaining = len(items) - display_limit
            if remaining > 0:
                lines.append(f"... and {remaining} more {noun}")
            break

    return _append_warnings("\n".join(lines) + "\n", warnings)


def format_titled(title: str, data: Any) -> str:
    """Render a payload under a title line."""
    return f"{title}:\n{to_json(data)}"


def format_targets(targets: dict[str, Any]) -> str:
    """Summarize active/dropped scrape targets."""
    active = targets.get("activeTargets") or []
    dropped = targets.get("droppedTargets") or []
    return (
        "Targets information:\n"
        f"Active targets: {len(active)}\n"
        f"Dropped targets: {len(dropped)}\n\n"
        f"Active Targets: {to_json(active)}\n"
        f"Dropped Targets: {to_json(dropped)}"
    )
