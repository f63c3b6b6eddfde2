"""Case-insensitive handling of open-ended plot attribute maps.

Shapefile exports disagree on key casing (``Block_numb`` vs ``block_numb``),
so keys are canonicalized once at ingestion and every lookup goes through
the same canonical form.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any


def canonical_key(key: Any) -> str:
    return str(key).strip().lower()


def canonicalize(attributes: Mapping[str, Any] | None) -> dict[str, Any]:
    """Return a copy of *attributes* with canonical keys.

    When two keys collapse onto the same canonical key, the first
    non-empty value wins.
    """
    if not isinstance(attributes, Mapping):
        return {}
    result: dict[str, Any] = {}
    for key, value in attributes.items():
        ckey = canonical_key(key)
        if not ckey:
            continue
        if ckey not in result or _is_empty(result[ckey]):
            result[ckey] = value
    return result


def lookup(attributes: Mapping[str, Any], *names: str, default: Any = None) -> Any:
    """Return the first non-empty value among *names*, ignoring key casing."""
    for name in names:
        value = attributes.get(canonical_key(name))
        if not _is_empty(value):
            return value
    return default


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())
