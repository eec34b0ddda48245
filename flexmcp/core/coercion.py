"""
Best-effort conversion of raw string tokens into typed configuration values.

Request metadata and deployment variables only ever carry strings. A token
is converted when it is exactly ``true``/``false``, an unsigned integer or
decimal numeral, or looks like a JSON document (starts with ``{``, ``[`` or
``"``). Anything else is returned as the original string so that URLs,
tokens and names are never reinterpreted by a permissive parser.
"""

import json
import re
from typing import Any, Union

# Closed value type carried by every configuration source.
ConfigValue = Union[str, int, float, bool, list, dict]

_NUMERAL = re.compile(r"^\d+(\.\d+)?$")
_STRUCTURED_PREFIXES = ("{", "[", '"')


def looks_structured(token: str) -> bool:
    return token.startswith(_STRUCTURED_PREFIXES)


def parse_literal(token: str) -> tuple[Any, bool]:
    """
    Return (value, degraded).

    degraded is True only when the token looked like a JSON document but
    failed to parse; the value is then the token unchanged. Callers use the
    flag to record a diagnostic.
    """
    if token in ("true", "false"):
        return token == "true", False
    if _NUMERAL.match(token):
        # JSON rejects leading zeros ("007"); such tokens stay strings.
        try:
            return json.loads(token), False
        except ValueError:
            return token, False
    if not looks_structured(token):
        return token, False
    try:
        return json.loads(token), False
    except ValueError:
        return token, True


def coerce_value(token: str) -> ConfigValue:
    """Convert a raw string token to a typed value. Never raises."""
    value, _ = parse_literal(token)
    return value
