# Purpose: Key normalisation. Both raw naming conventions that reach the
#          resolver (hyphen-case request metadata, UPPER_SNAKE deployment
#          variables) are folded into lower camel case before merging.
# Relationships: Used by core/resolver.py only.

import re

_HYPHEN_SEGMENT = re.compile(r"-([a-z])")
_UNDERSCORE_SEGMENT = re.compile(r"_([a-z])")


def kebab_to_camel(key: str) -> str:
    """'api-url' -> 'apiUrl'. Case-sensitive: 'Api-Url' is left untouched."""
    return _HYPHEN_SEGMENT.sub(lambda m: m.group(1).upper(), key)


def upper_snake_to_camel(key: str) -> str:
    """'API_URL' -> 'apiUrl'. The whole key is lower-cased first."""
    return _UNDERSCORE_SEGMENT.sub(lambda m: m.group(1).upper(), key.lower())
