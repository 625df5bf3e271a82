"""Assemble public item lists from raw upstream records."""

from __future__ import annotations

from typing import Any, Callable, Iterable, Mapping

from .models import NormalizedEvent, SortKey
from .normalization import extract, timestamp_fields_for
from .posters import DEFAULT_PROXY_PATH, CredentialContext, build_poster

RecordPredicate = Callable[[Mapping[str, Any]], bool]


def assemble(
    records: Iterable[Any],
    *,
    limit: int,
    sort_key: SortKey,
    credentials: CredentialContext | None = None,
    include: RecordPredicate | None = None,
    proxy_path: str = DEFAULT_PROXY_PATH,
    undated_ms: int | None = None,
) -> list[NormalizedEvent]:
    """Normalise, filter, sort newest-first and truncate upstream records.

    Records without a timestamp take ``undated_ms`` when given and otherwise
    sort last. The sort is stable, so equal timestamps keep their upstream
    order and repeated runs are identical.
    """

    timestamp_fields = timestamp_fields_for(sort_key)
    events: list[NormalizedEvent] = []
    for record in records:
        if not isinstance(record, Mapping):
            continue
        if include is not None and not include(record):
            continue
        event = extract(record, timestamp_fields=timestamp_fields)
        if event.timestamp_ms is None and undated_ms is not None:
            event.timestamp_ms = undated_ms
        if credentials is not None:
            event.poster_url = build_poster(record, credentials, proxy_path=proxy_path)
        events.append(event)

    events.sort(key=lambda event: event.sort_value, reverse=True)
    return events[: max(limit, 0)]


def to_items_payload(
    events: Iterable[NormalizedEvent], sort_key: SortKey
) -> list[dict[str, object]]:
    return [event.to_payload(sort_key) for event in events]
