"""Tests for tool parameter extraction."""

from __future__ import annotations

import pytest

from mcp_prometheus.exceptions import ParameterError
from mcp_prometheus.params import (
    extract_params,
    get_limit,
    get_string,
    get_string_array,
    is_unlimited,
)


class TestExtractParams:
    def test_mapping(self):
        assert extract_params({"query": "up"}) == {"query": "up"}

    @pytest.mark.parametrize("arguments", [None, "up", ["query"], 42])
    def test_non_mapping(self, arguments):
        assert extract_params(arguments) == {}


class TestGetString:
    def test_present(self):
        assert get_string({"query": "up"}, "query") == "up"

    def test_missing_optional(self):
        assert get_string({}, "time") == ""

    def test_missing_required(self):
        with pytest.raises(ParameterError) as exc_info:
            get_string({}, "query", required=True)

        assert str(exc_info.value) == "query parameter is required and must be a string"
        assert exc_info.value.parameter == "query"

    def test_empty_required(self):
        with pytest.raises(ParameterError):
            get_string({"query": ""}, "query", required=True)

    def test_numbers_are_coerced(self):
        assert get_string({"time": 1704067200}, "time") == "1704067200"
        assert get_string({"step": 15.5}, "step") == "15.5"

    def test_wrong_type(self):
        with pytest.raises(ParameterError):
            get_string({"query": ["up"]}, "query", required=True)


class TestGetStringArray:
    def test_list(self):
        assert get_string_array({"matches": ["up", "node_load1"]}, "matches") == [
            "up",
            "node_load1",
        ]

    def test_non_strings_are_dropped(self):
        assert get_string_array({"matches": ["up", 1, None, ""]}, "matches") == ["up"]

    def test_bare_string(self):
        assert get_string_array({"matches": '{job="node"}'}, "matches") == ['{job="node"}']

    def test_missing_optional(self):
        assert get_string_array({}, "matches") == []

    def test_missing_required(self):
        with pytest.raises(ParameterError) as exc_info:
            get_string_array({}, "matches", required=True)

        assert "matches parameter is required and must be an array of strings" in str(
            exc_info.value
        )

    def test_only_non_strings_required(self):
        with pytest.raises(ParameterError):
            get_string_array({"matches": [1, 2]}, "matches", required=True)

    def test_wrong_type(self):
        with pytest.raises(ParameterError):
            get_string_array({"matches": {"job": "node"}}, "matches")


class TestGetLimit:
    def test_valid(self):
        assert get_limit({"limit": "10"}) == "10"
        assert get_limit({"limit": 25}) == "25"
        assert get_limit({}) == ""

    @pytest.mark.parametrize("value", ["-1", "ten", "1.5"])
    def test_invalid(self, value):
        with pytest.raises(ParameterError):
            get_limit({"limit": value})


class TestIsUnlimited:
    @pytest.mark.parametrize("value", ["true", "TRUE", "True", True])
    def test_enabled(self, value):
        assert is_unlimited({"unlimited": value}) is True

    @pytest.mark.parametrize("value", ["false", "yes", "1", False, None, 1])
    def test_disabled(self, value):
        assert is_unlimited({"unlimited": value}) is False

    def test_missing(self):
        assert is_unlimited({}) is False
