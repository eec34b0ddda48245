# Purpose: Tests for core/coercion.py and core/keys.py.
# Covers: literal sniffing (booleans, numerals, JSON documents, plain strings),
#         degradation of malformed JSON, both key naming conventions.

import pytest

from flexmcp.core.coercion import coerce_value, parse_literal
from flexmcp.core.keys import kebab_to_camel, upper_snake_to_camel


@pytest.mark.parametrize(
    "token, expected",
    [
        ("true", True),
        ("false", False),
        ("42", 42),
        ("3.5", 3.5),
        ('["x", "y"]', ["x", "y"]),
        ('{"a": 1}', {"a": 1}),
        ('"quoted"', "quoted"),
        ("plain", "plain"),
    ],
)
def test_coerce_value(token, expected):
    """Tokens matching the strict literal forms become typed values."""
    assert coerce_value(token) == expected


def test_booleans_are_not_numbers():
    """'true' must become the bool True, not the integer 1."""
    assert coerce_value("true") is True


@pytest.mark.parametrize(
    "token",
    ["http://localhost:8000", "True", "-1", "1e5", "1.", "null", "abc123", ""],
)
def test_ordinary_strings_are_left_alone(token):
    """Anything outside the strict literal forms is returned unchanged."""
    assert coerce_value(token) == token


def test_leading_zero_numeral_stays_string():
    """'007' is not valid JSON, so it stays a string without a diagnostic."""
    assert parse_literal("007") == ("007", False)


def test_malformed_json_degrades_to_string():
    """'{bad' is returned as-is and flagged as degraded; nothing raises."""
    assert coerce_value("{bad") == "{bad"
    assert parse_literal("{bad") == ("{bad", True)


def test_plain_string_is_not_degraded():
    """Only tokens that looked like JSON are reported as degraded."""
    assert parse_literal("plain") == ("plain", False)


# ---------------------------------------------------------------------------
# Key normalisation
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "key, expected",
    [
        ("api-url", "apiUrl"),
        ("client-db-name", "clientDbName"),
        ("timeout", "timeout"),
        ("Api-Url", "Api-Url"),
        ("to-use", "toUse"),
    ],
)
def test_kebab_to_camel(key, expected):
    assert kebab_to_camel(key) == expected


@pytest.mark.parametrize(
    "key, expected",
    [
        ("API_URL", "apiUrl"),
        ("DEFAULT_TOOLS", "defaultTools"),
        ("TIMEOUT", "timeout"),
        ("Mixed_Case", "mixedCase"),
    ],
)
def test_upper_snake_to_camel(key, expected):
    assert upper_snake_to_camel(key) == expected
