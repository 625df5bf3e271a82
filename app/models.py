"""Pydantic models describing the public media payloads."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

SortKey = Literal["watched", "added"]


@dataclass(slots=True)
class RecordBatch:
    """Raw upstream records plus a warning when the fetch degraded.

    ``local_times`` marks rows whose offset-less dates are wall-clock times in
    the server's zone rather than UTC.
    """

    items: list[dict[str, Any]] = field(default_factory=list)
    warning: str | None = None
    fetched: bool = True
    local_times: bool = False

    @property
    def ok(self) -> bool:
        return self.warning is None


class NormalizedEvent(BaseModel):
    """Schema-independent view of a single watch or addition."""

    model_config = ConfigDict(populate_by_name=True)

    title: str = "Unknown"
    parent_title: str | None = Field(default=None, alias="parentTitle")
    year: int | None = None
    timestamp_ms: int | None = Field(default=None, alias="timestampMs")
    media_type: str = Field(default="", alias="mediaType")
    poster_url: str | None = Field(default=None, alias="posterUrl")

    @property
    def sort_value(self) -> int:
        return self.timestamp_ms or 0

    def to_payload(self, sort_key: SortKey) -> dict[str, object]:
        """Return the public item shape served to browser clients."""

        timestamp_field = "watched_at" if sort_key == "watched" else "added_at"
        return {
            "title": self.title,
            "grandparent_title": self.parent_title,
            "year": self.year,
            timestamp_field: self.timestamp_ms,
            "media_type": self.media_type,
            "poster": self.poster_url,
        }
