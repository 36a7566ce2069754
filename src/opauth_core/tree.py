"""
Canonical auth tree helpers.

Auth and error results are plain data: dicts keyed by strings, lists, and
scalar leaves. Provider profiles are converted into this form at the strategy
boundary so nothing downstream needs to reflect over arbitrary objects.
"""

import re
from collections.abc import Mapping, Sequence
from dataclasses import asdict, is_dataclass
from typing import Any

_MISSING = object()
_FIELD_NAME = re.compile(r"^([^\[\]]+)((?:\[[^\[\]]*\])*)$")
_FIELD_KEY = re.compile(r"\[([^\[\]]*)\]")


def to_tree(value: Any) -> Any:
    """Convert ``value`` into a data-only tree.

    Mappings become dicts, non-string sequences become lists, dataclasses and
    plain objects contribute their public attributes. Booleans are turned into
    1/0 so they survive query strings and form fields unchanged.
    """
    if isinstance(value, bool):
        return 1 if value else 0
    if value is None or isinstance(value, (int, float, str)):
        return value
    if isinstance(value, Mapping):
        return {str(key): to_tree(item) for key, item in value.items()}
    if isinstance(value, (bytes, bytearray)):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, Sequence):
        return [to_tree(item) for item in value]
    if is_dataclass(value) and not isinstance(value, type):
        return to_tree(asdict(value))
    if hasattr(value, "__dict__"):
        return {
            key: to_tree(item) for key, item in vars(value).items() if not key.startswith("_")
        }
    return str(value)


def flatten(tree: Mapping[str, Any] | Sequence[Any], prefix: str | None = None) -> dict[str, Any]:
    """Flatten a nested tree into form-field names.

    >>> flatten({"a": {"b": 1, "c": [2, 3]}})
    {'a[b]': 1, 'a[c][0]': 2, 'a[c][1]': 3}
    """
    items = tree.items() if isinstance(tree, Mapping) else enumerate(tree)
    results: dict[str, Any] = {}
    for key, value in items:
        name = str(key) if not prefix else f"{prefix}[{key}]"
        if isinstance(value, Mapping) or (
            isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray))
        ):
            results.update(flatten(value, name))
        else:
            results[name] = value
    return results


def unflatten(fields: Mapping[str, Any]) -> dict[str, Any]:
    """Rebuild a tree from ``flatten`` field names.

    Levels whose keys are exactly ``0..n-1`` come back as lists.

    >>> unflatten({"a[b]": "1", "a[c][0]": "2", "a[c][1]": "3"})
    {'a': {'b': '1', 'c': ['2', '3']}}

    Raises:
        ValueError: If a field name is malformed or clashes with another field
    """
    root: dict[str, Any] = {}
    for name, value in fields.items():
        match = _FIELD_NAME.match(str(name))
        if not match:
            raise ValueError(f"Malformed field name {name!r}")
        path = [match.group(1), *_FIELD_KEY.findall(match.group(2))]
        node = root
        for key in path[:-1]:
            child = node.setdefault(key, {})
            if not isinstance(child, dict):
                raise ValueError(f"Field {name!r} nests under a scalar value")
            node = child
        if isinstance(node.get(path[-1]), dict):
            raise ValueError(f"Field {name!r} overwrites a nested value")
        node[path[-1]] = value
    return {key: _restore_lists(value) for key, value in root.items()}


def _restore_lists(node: Any) -> Any:
    if not isinstance(node, dict):
        return node
    items = {key: _restore_lists(value) for key, value in node.items()}
    indices = [str(i) for i in range(len(items))]
    if items and set(items) == set(indices):
        return [items[i] for i in indices]
    return items


def get_path(tree: Any, path: str, default: Any = None) -> Any:
    """Read a dotted path, stepping into dicts by key and lists by index."""
    node = tree
    for element in path.split("."):
        if isinstance(node, Mapping) and element in node:
            node = node[element]
        elif isinstance(node, list) and element.isdigit() and int(element) < len(node):
            node = node[int(element)]
        else:
            return default
    return node


def set_path(tree: Mapping[str, Any] | None, path: str, value: Any) -> dict[str, Any]:
    """Return a copy of ``tree`` with ``value`` stored at the dotted ``path``.

    Containers along the path are copied; missing or non-dict levels are
    replaced with new dicts. The input tree is never modified.
    """
    head, _, rest = path.partition(".")
    result = dict(tree) if tree else {}
    if not rest:
        result[head] = value
        return result
    child = result.get(head)
    result[head] = set_path(child if isinstance(child, Mapping) else None, rest, value)
    return result


def map_profile(
    profile: Any, auth: Mapping[str, Any], profile_path: str, auth_path: str
) -> tuple[dict[str, Any], bool]:
    """Copy ``profile_path`` from a provider profile to ``auth_path`` in the auth tree.

    Returns:
        The new auth tree and whether the profile value was found. The auth
        tree is returned unchanged (as a copy) when the value is missing.
    """
    value = get_path(profile, profile_path, _MISSING)
    if value is _MISSING or value is None:
        return dict(auth), False
    return set_path(auth, auth_path, value), True


def apply_response_map(
    profile: Any, auth: Mapping[str, Any], response_map: Mapping[str, str]
) -> dict[str, Any]:
    """Apply an ``{auth_path: profile_path}`` map to build up an auth tree."""
    result = dict(auth)
    for auth_path, profile_path in response_map.items():
        result, _ = map_profile(profile, result, profile_path, auth_path)
    return result
