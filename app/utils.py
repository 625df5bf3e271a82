"""Utility helpers for the media proxy service."""

from __future__ import annotations

from typing import Any, Iterable, Mapping


_MISSING = object()

# Keys under which upstream envelopes commonly nest their record lists.
RECORD_LIST_KEYS: tuple[str, ...] = (
    "Items",
    "items",
    "data",
    "Metadata",
    "MediaContainer",
    "response",
    "recently_added",
    "results",
)


def coerce_int(value: Any, *, default: int | None = None) -> int | None:
    """Return ``value`` as an int, or ``default`` when it cannot be converted."""

    if isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return default


def clamp(value: int, lower: int, upper: int) -> int:
    return max(lower, min(upper, value))


def dig(record: Mapping[str, Any], path: str, default: Any = None) -> Any:
    """Resolve a dotted ``path`` through nested mappings."""

    current: Any = record
    for part in path.split("."):
        if not isinstance(current, Mapping):
            return default
        current = current.get(part, _MISSING)
        if current is _MISSING:
            return default
    return current


def first_present(record: Mapping[str, Any], paths: Iterable[str]) -> Any:
    """Return the first candidate value that is neither missing nor blank."""

    for path in paths:
        value = dig(record, path)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def extract_records(payload: Any, *paths: str) -> list[dict[str, Any]]:
    """Pull a list of record mappings out of an upstream response envelope.

    Accepts a bare list, one of the explicit dotted ``paths``, a list nested
    under a well-known envelope key, or an object whose values are records.
    """

    if isinstance(payload, list):
        return [entry for entry in payload if isinstance(entry, dict)]
    if not isinstance(payload, dict):
        return []

    for path in paths:
        nested = dig(payload, path)
        if isinstance(nested, (list, dict)):
            return extract_records(nested)

    enveloped = False
    for key in RECORD_LIST_KEYS:
        nested = payload.get(key)
        if isinstance(nested, list):
            return [entry for entry in nested if isinstance(entry, dict)]
        if isinstance(nested, dict):
            enveloped = True
            found = extract_records(nested)
            if found:
                return found
    if enveloped:
        return []

    values = list(payload.values())
    if values and all(isinstance(value, dict) for value in values):
        return values
    return []
