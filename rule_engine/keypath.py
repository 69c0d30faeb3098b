"""
Keypath access helpers.

A keypath is a dotted string ("page.name") resolved by chaining single-key
lookups. Objects that expose their own ``value_for_key`` (like RuleContext)
are asked directly, so looking up a key on a rule context may trigger rule
inference.
"""

from collections.abc import Mapping, MutableMapping
from typing import Any, Optional


def value_for_key(obj: Any, key: str) -> Any:
    """Return the value of a single key on obj, or None if it is missing."""
    if obj is None or not key:
        return None

    lookup = getattr(obj, "value_for_key", None)
    if callable(lookup):
        return lookup(key)

    if isinstance(obj, Mapping):
        return obj.get(key)

    return getattr(obj, key, None)


def value_for_key_path(obj: Any, key_path: Optional[str]) -> Any:
    """Resolve a dotted keypath against obj, stopping at the first None."""
    if obj is None or not key_path:
        return None

    value = obj
    for key in key_path.split("."):
        value = value_for_key(value, key)
        if value is None:
            return None
    return value


def take_value_for_key(obj: Any, value: Any, key: str) -> None:
    """Set a single key on obj (own setter, mapping item or attribute)."""
    if obj is None or not key:
        return

    setter = getattr(obj, "take_value_for_key", None)
    if callable(setter):
        setter(value, key)
    elif isinstance(obj, MutableMapping):
        obj[key] = value
    else:
        setattr(obj, key, value)


def take_value_for_key_path(obj: Any, value: Any, key_path: Optional[str]) -> None:
    """Set the last segment of a keypath on the object the prefix resolves to."""
    if obj is None or not key_path:
        return

    prefix, _, key = key_path.rpartition(".")
    target = value_for_key_path(obj, prefix) if prefix else obj
    take_value_for_key(target, value, key)
