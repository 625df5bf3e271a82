"""Time-bucket aggregation for playback activity charts.

All functions are pure: the caller supplies the reference time, so the same
events and reference always produce the same histogram.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Iterable

from .models import NormalizedEvent

DAY_MS = 86_400_000
MONTH_DAYS = 30

WEEKDAYS: tuple[str, ...] = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
TIME_BLOCKS: tuple[str, ...] = (
    "00-03",
    "03-06",
    "06-09",
    "09-12",
    "12-15",
    "15-18",
    "18-21",
    "21-24",
)


def _localize(timestamp_ms: int, tz: tzinfo | None) -> datetime:
    moment = datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)
    return moment.astimezone(tz) if tz is not None else moment.astimezone()


def _event_moment(event: NormalizedEvent, tz: tzinfo | None) -> datetime | None:
    if event.timestamp_ms is None:
        return None
    try:
        return _localize(event.timestamp_ms, tz)
    except (OverflowError, OSError, ValueError):
        # Instants at the edge of the datetime range cannot be shifted east.
        return None


def empty_weekly_grid() -> dict[str, int]:
    return {f"{day}_{block}": 0 for day in WEEKDAYS for block in TIME_BLOCKS}


def empty_monthly_grid() -> dict[str, int]:
    return {f"day_{index}": 0 for index in range(1, MONTH_DAYS + 1)}


def weekly_grid(
    events: Iterable[NormalizedEvent], *, tz: tzinfo | None = None
) -> dict[str, int]:
    """Count events per local weekday and three-hour block.

    Events are not filtered by recency; the caller decides the window.
    """

    grid = empty_weekly_grid()
    for event in events:
        moment = _event_moment(event, tz)
        if moment is None:
            continue
        key = f"{WEEKDAYS[moment.weekday()]}_{TIME_BLOCKS[moment.hour // 3]}"
        grid[key] += 1
    return grid


def monthly_grid(
    events: Iterable[NormalizedEvent], reference_ms: int
) -> dict[str, int]:
    """Count events per day offset, ``day_30`` being the reference day."""

    grid = empty_monthly_grid()
    for event in events:
        if event.timestamp_ms is None:
            continue
        days_ago = (reference_ms - event.timestamp_ms) // DAY_MS
        if 0 <= days_ago < MONTH_DAYS:
            grid[f"day_{MONTH_DAYS - days_ago}"] += 1
    return grid


def daily_series(
    events: Iterable[NormalizedEvent],
    reference_ms: int,
    days: int,
    *,
    tz: tzinfo | None = None,
) -> tuple[list[str], list[int]]:
    """Return ISO dates (oldest first) ending on the reference day with counts."""

    if days < 1:
        return [], []
    today = _localize(reference_ms, tz).date()
    start = today - timedelta(days=days - 1)
    labels: list[date] = [start + timedelta(days=offset) for offset in range(days)]
    counts = [0] * days
    for event in events:
        moment = _event_moment(event, tz)
        if moment is None:
            continue
        offset = (moment.date() - start).days
        if 0 <= offset < days:
            counts[offset] += 1
    return [label.isoformat() for label in labels], counts
