"""
Dictionary templating: replaces {placeholder} tokens with dictionary values.
"""

import re
from collections.abc import Mapping
from typing import Any

PLACEHOLDER_PATTERN = re.compile(r"\{([A-Za-z0-9_-]+)\}")


def env_replace(value: Any, dictionary: Mapping[str, Any]) -> Any:
    """Substitute ``{key}`` tokens in ``value`` from ``dictionary``.

    Non-string values are returned unchanged. Unknown keys, and keys whose
    value is None, are left as written. Substitution is a single pass; replaced text is not re-scanned.

    Args:
        value: Value to substitute into
        dictionary: Lookup table for placeholder names

    Returns:
        The substituted string, or ``value`` itself if it is not a string

    Examples:
        >>> env_replace("{host}/cb", {"host": "http://x"})
        'http://x/cb'
        >>> env_replace("{missing}", {})
        '{missing}'
    """
    if not isinstance(value, str):
        return value

    def _lookup(match: re.Match) -> str:
        key = match.group(1)
        if dictionary.get(key) is not None:
            return str(dictionary[key])
        return match.group(0)

    return PLACEHOLDER_PATTERN.sub(_lookup, value)
