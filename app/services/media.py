"""Media service orchestrating caching, upstream fetches and normalisation."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import timezone
from typing import Any, Callable
from urllib.parse import urlsplit

import httpx

from ..activity import (
    daily_series,
    empty_monthly_grid,
    empty_weekly_grid,
    monthly_grid,
    weekly_grid,
)
from ..assembler import assemble, to_items_payload
from ..cache import TTLCache
from ..config import Settings
from ..models import NormalizedEvent, RecordBatch, SortKey
from ..normalization import WATCHED_TIMESTAMP_FIELDS, extract
from ..utils import clamp
from .base import UpstreamAdapter

logger = logging.getLogger(__name__)

MAX_ITEMS = 100
DEFAULT_DAILY_DAYS = 30
MAX_DAILY_DAYS = 365
WEEK_DAYS = 7
MONTH_DAYS = 30
NO_EVENTS_WARNING = "No playback events found"


@dataclass(slots=True)
class ImageResult:
    """Artwork bytes fetched on behalf of a browser client."""

    content: bytes
    content_type: str


class MediaService:
    """Serve public recently-watched, recently-added and activity payloads."""

    def __init__(
        self,
        settings: Settings,
        adapter: UpstreamAdapter,
        image_client: httpx.AsyncClient,
        *,
        cache: TTLCache | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self._settings = settings
        self._adapter = adapter
        self._image_client = image_client
        self._clock = clock
        self._cache = cache if cache is not None else TTLCache(clock)
        self._proxy_path = f"{settings.public_prefix}/img"

    @property
    def adapter(self) -> UpstreamAdapter:
        return self._adapter

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    async def recently_watched(self, limit: int | None = None) -> dict[str, Any]:
        return await self._items(
            "watched",
            limit,
            default=self._adapter.default_watched_limit,
            ttl=self._settings.watched_cache_seconds,
        )

    async def recently_added(self, limit: int | None = None) -> dict[str, Any]:
        return await self._items(
            "added",
            limit,
            default=self._adapter.default_added_limit,
            ttl=self._settings.added_cache_seconds,
        )

    async def _items(
        self, sort_key: SortKey, limit: int | None, *, default: int, ttl: float
    ) -> dict[str, Any]:
        adapter = self._adapter
        resolved = clamp(limit, 1, MAX_ITEMS) if limit and limit > 0 else default
        key = f"{adapter.name}-{sort_key}-{resolved}"
        hit = self._cache.get(key)
        if hit is not None:
            return hit

        try:
            if sort_key == "watched":
                batch = await adapter.fetch_recent_plays(resolved)
            else:
                batch = await adapter.fetch_recently_added(resolved)
            if not batch.ok:
                return {"items": [], "warning": batch.warning}
            events = assemble(
                batch.items,
                limit=resolved,
                sort_key=sort_key,
                credentials=adapter.credentials,
                include=adapter.has_been_played if sort_key == "watched" else None,
                proxy_path=self._proxy_path,
                undated_ms=self._now_ms() if sort_key == "added" else None,
            )
        except Exception as exc:
            logger.exception("Failed to build recently %s list", sort_key)
            return {"items": [], "warning": f"{adapter.name}: {exc}"}

        logger.debug("Built %d recently %s items", len(events), sort_key)
        payload = {"items": to_items_payload(events, sort_key)}
        self._cache.set(key, payload, ttl)
        return payload

    async def _history(self, days_back: int) -> tuple[list[NormalizedEvent], RecordBatch]:
        batch = await self._adapter.fetch_history_window(days_back)
        # Playback Reporting stores wall-clock times of the server's zone.
        naive_tz = self._settings.timezone if batch.local_times else timezone.utc
        events = [
            extract(
                record, timestamp_fields=WATCHED_TIMESTAMP_FIELDS, naive_tz=naive_tz
            )
            for record in batch.items
        ]
        events = [event for event in events if event.timestamp_ms is not None]
        return events, batch

    def _activity_payload(
        self, key: str, payload: dict[str, Any], batch: RecordBatch, events: list
    ) -> dict[str, Any]:
        warning = batch.warning
        if warning is None and not events:
            warning = NO_EVENTS_WARNING
        if warning:
            payload["warning"] = warning
        if batch.fetched:
            self._cache.set(key, payload, self._settings.activity_cache_seconds)
        return payload

    async def weekly_activity(self) -> dict[str, Any]:
        key = f"{self._adapter.name}-activity-weekly"
        hit = self._cache.get(key)
        if hit is not None:
            return hit
        try:
            events, batch = await self._history(WEEK_DAYS)
            data = weekly_grid(events, tz=self._settings.timezone)
        except Exception as exc:
            logger.exception("Failed to build weekly activity")
            return {"data": empty_weekly_grid(), "warning": f"Activity error: {exc}"}
        return self._activity_payload(key, {"data": data}, batch, events)

    async def monthly_activity(self) -> dict[str, Any]:
        key = f"{self._adapter.name}-activity-monthly"
        hit = self._cache.get(key)
        if hit is not None:
            return hit
        try:
            events, batch = await self._history(MONTH_DAYS)
            data = monthly_grid(events, self._now_ms())
        except Exception as exc:
            logger.exception("Failed to build monthly activity")
            return {"data": empty_monthly_grid(), "warning": f"Activity error: {exc}"}
        return self._activity_payload(key, {"data": data}, batch, events)

    async def daily_activity(self, days: int | None = None) -> dict[str, Any]:
        resolved = (
            clamp(days, 1, MAX_DAILY_DAYS) if days and days > 0 else DEFAULT_DAILY_DAYS
        )
        key = f"{self._adapter.name}-activity-daily-{resolved}"
        hit = self._cache.get(key)
        if hit is not None:
            return hit
        now_ms = self._now_ms()
        try:
            events, batch = await self._history(resolved)
            labels, counts = daily_series(
                events, now_ms, resolved, tz=self._settings.timezone
            )
        except Exception as exc:
            logger.exception("Failed to build daily activity")
            labels, counts = daily_series([], now_ms, resolved, tz=self._settings.timezone)
            return {"days": labels, "counts": counts, "warning": f"Activity error: {exc}"}
        return self._activity_payload(
            key, {"days": labels, "counts": counts}, batch, events
        )

    async def fetch_image(self, url: str, auth: str | None = None) -> ImageResult | None:
        """Fetch artwork, attaching backend credentials only for that backend's host."""

        if not url.lower().startswith(("http://", "https://")):
            logger.warning("Rejected image proxy request for non-HTTP URL")
            return None

        headers = {"User-Agent": f"{self._settings.app_name}/1.0"}
        params: dict[str, str] | None = None
        if auth:
            credentials = self._adapter.authorize_image(url, auth)
            if credentials is None:
                logger.warning(
                    "Refusing to attach %s credentials for host %s",
                    auth,
                    urlsplit(url).netloc,
                )
                return None
            headers.update(credentials.headers)
            params = credentials.params or None

        try:
            response = await self._image_client.get(url, headers=headers, params=params)
        except httpx.HTTPError as exc:
            logger.warning("Image proxy request failed: %s", exc.__class__.__name__)
            return None
        if response.status_code >= 400:
            logger.warning(
                "Image proxy upstream error: %s %s",
                response.status_code,
                response.reason_phrase,
            )
            return None
        content_type = response.headers.get("content-type") or "image/jpeg"
        return ImageResult(content=response.content, content_type=content_type)

    def health(self) -> dict[str, Any]:
        settings = self._settings
        return {
            "ok": True,
            "backend": self._adapter.name,
            "hasJellyfin": settings.has_jellyfin,
            "hasTautulli": settings.has_tautulli,
            "hasPlex": settings.has_plex,
            "hasPlaybackDb": settings.has_playback_db,
            "timeoutMs": settings.timeout_ms,
        }

    async def server_info(self) -> dict[str, Any]:
        try:
            info = await self._adapter.server_info()
        except RuntimeError as exc:
            return {"error": str(exc)}
        except Exception as exc:
            logger.exception("Server info request failed")
            return {"error": str(exc)}
        return {"success": True, "server_info": info}
