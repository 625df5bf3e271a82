"""Field extraction for heterogeneous upstream history and library records."""

from __future__ import annotations

import math
import re
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Any, Mapping, Sequence

from .models import NormalizedEvent, SortKey
from .utils import coerce_int, dig, first_present

SECONDS_FLOOR = 100_000
MILLISECONDS_FLOOR = 9_999_999_999
# 9999-12-31T23:59:59.999Z, the last instant ``datetime`` can represent.
MILLISECONDS_CEILING = 253_402_300_799_999

TITLE_FIELDS: tuple[str, ...] = ("title", "Name", "name")
FULL_TITLE_FIELDS: tuple[str, ...] = ("full_title", "FullTitle", "media_title")
PARENT_TITLE_FIELDS: tuple[str, ...] = (
    "grandparent_title",
    "grandparentTitle",
    "SeriesName",
)
SEASON_PARENT_FIELDS: tuple[str, ...] = ("parent_title", "parentTitle")
YEAR_FIELDS: tuple[str, ...] = ("year", "ProductionYear")
MEDIA_TYPE_FIELDS: tuple[str, ...] = ("media_type", "type", "Type", "ItemType")

WATCHED_TIMESTAMP_FIELDS: tuple[str, ...] = (
    "UserData.LastPlayedDate",
    "viewedAt",
    "lastViewedAt",
    "date",
    "started",
    "stopped",
    "watched_at",
    "timestamp",
    "DatePlayed",
)
ADDED_TIMESTAMP_FIELDS: tuple[str, ...] = (
    "DateCreated",
    "addedAt",
    "added_at",
    "timestamp",
)

_EXCESS_FRACTION_RE = re.compile(r"(\.\d{6})\d+")
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def timestamp_fields_for(sort_key: SortKey) -> tuple[str, ...]:
    if sort_key == "added":
        return ADDED_TIMESTAMP_FIELDS
    return WATCHED_TIMESTAMP_FIELDS


def parse_timestamp(value: Any, *, naive_tz: tzinfo | None = timezone.utc) -> int | None:
    """Classify a raw timestamp value and return epoch milliseconds.

    Integers in ``[100000, 9999999999)`` are epoch seconds, larger integers up
    to year 9999 are already milliseconds, anything else goes through
    date-string parsing. Dates without an offset are read in ``naive_tz``;
    ``None`` means the host's local zone.
    """

    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, datetime):
        return _within_range(_datetime_to_ms(value, naive_tz))

    number: int | None = None
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        number = int(value)
    elif isinstance(value, int):
        number = value
    elif isinstance(value, str) and value.strip().isdecimal():
        number = int(value.strip())

    if number is not None:
        if SECONDS_FLOOR <= number < MILLISECONDS_FLOOR:
            return number * 1000
        return _within_range(number) if number >= MILLISECONDS_FLOOR else None

    if isinstance(value, str):
        return _parse_date_string(value, naive_tz)
    return None


def _within_range(millis: int | None) -> int | None:
    # Jellyfin reports unset dates as 0001-01-01.
    if millis is None or millis <= 0 or millis > MILLISECONDS_CEILING:
        return None
    return millis


def _parse_date_string(value: str, naive_tz: tzinfo | None) -> int | None:
    text = value.strip()
    if not text:
        return None
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    text = _EXCESS_FRACTION_RE.sub(r"\1", text)
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    return _within_range(_datetime_to_ms(parsed, naive_tz))


def _datetime_to_ms(value: datetime, naive_tz: tzinfo | None) -> int | None:
    if value.tzinfo is None:
        try:
            if naive_tz is None:
                value = value.astimezone()
            else:
                value = value.replace(tzinfo=naive_tz)
        except (OverflowError, OSError, ValueError):
            return None
    return (value - _EPOCH) // timedelta(milliseconds=1)


def resolve_timestamp(
    record: Mapping[str, Any],
    candidates: Sequence[str],
    *,
    naive_tz: tzinfo | None = timezone.utc,
) -> int | None:
    """Return the first candidate field that parses to a timestamp."""

    for path in candidates:
        value = dig(record, path)
        if value is None or (isinstance(value, str) and not value.strip()):
            continue
        parsed = parse_timestamp(value, naive_tz=naive_tz)
        if parsed is not None:
            return parsed
    return None


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def resolve_media_type(record: Mapping[str, Any]) -> str:
    value = _text(first_present(record, MEDIA_TYPE_FIELDS))
    return value.lower() if value else ""


def resolve_title(record: Mapping[str, Any]) -> str:
    title = _text(first_present(record, TITLE_FIELDS))
    season_name = _text(record.get("SeasonName"))
    index_number = coerce_int(record.get("IndexNumber"))
    if title and season_name and index_number:
        return f"{season_name} E{index_number} - {title}"
    if title:
        return title
    for fields in (FULL_TITLE_FIELDS, PARENT_TITLE_FIELDS, SEASON_PARENT_FIELDS):
        fallback = _text(first_present(record, fields))
        if fallback:
            return fallback
    return "Unknown"


def resolve_parent_title(record: Mapping[str, Any], media_type: str) -> str | None:
    parent = _text(first_present(record, PARENT_TITLE_FIELDS))
    if parent:
        return parent
    if media_type == "season":
        return _text(first_present(record, SEASON_PARENT_FIELDS))
    return None


def extract(
    record: Mapping[str, Any],
    *,
    timestamp_fields: Sequence[str] = WATCHED_TIMESTAMP_FIELDS,
    naive_tz: tzinfo | None = timezone.utc,
) -> NormalizedEvent:
    """Build a ``NormalizedEvent`` from any supported upstream record shape."""

    if not isinstance(record, Mapping):
        return NormalizedEvent()

    media_type = resolve_media_type(record)
    year = coerce_int(first_present(record, YEAR_FIELDS))
    return NormalizedEvent(
        title=resolve_title(record),
        parent_title=resolve_parent_title(record, media_type),
        year=year if year and year > 0 else None,
        timestamp_ms=resolve_timestamp(record, timestamp_fields, naive_tz=naive_tz),
        media_type=media_type,
    )
