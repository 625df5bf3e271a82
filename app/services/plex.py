"""Adapter for the Plex Media Server API."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Mapping

import httpx

from ..config import Settings
from ..models import RecordBatch
from ..posters import CredentialContext
from ..utils import coerce_int, extract_records
from .base import ImageAuth, UpstreamAdapter
from .http import FetchResult, fetch_json

logger = logging.getLogger(__name__)

DAY_SECONDS = 86_400


class PlexAdapter(UpstreamAdapter):
    """Plays, additions and artwork straight from a Plex server."""

    name = "plex"

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(settings, http_client)
        self._clock = clock

    @property
    def configured(self) -> bool:
        return self._settings.has_plex

    @property
    def credentials(self) -> CredentialContext:
        return CredentialContext(
            tag="plex", base_url=self._settings.plex_url, configured=self.configured
        )

    def _headers(self) -> dict[str, str]:
        return {
            "X-Plex-Token": self._settings.plex_token or "",
            "Accept": "application/json",
        }

    async def _request(
        self, path: str, params: Mapping[str, Any] | None = None
    ) -> FetchResult:
        url = f"{self._settings.plex_url}{path}"
        return await fetch_json(self._client, url, params=params, headers=self._headers())

    async def _metadata(
        self, path: str, params: Mapping[str, Any], description: str
    ) -> RecordBatch:
        if not self.configured:
            return self.not_configured()
        result = await self._request(path, params)
        if not result.ok:
            logger.warning("Plex %s request failed: %s", description, result.error)
            return self.failure(result.error)
        return RecordBatch(items=extract_records(result.data, "MediaContainer.Metadata"))

    async def fetch_recent_plays(self, limit: int) -> RecordBatch:
        return await self._metadata(
            "/status/sessions/history/all",
            {
                "sort": "viewedAt:desc",
                "X-Plex-Container-Start": 0,
                "X-Plex-Container-Size": limit,
            },
            "history",
        )

    async def fetch_recently_added(self, limit: int) -> RecordBatch:
        return await self._metadata(
            "/library/recentlyAdded",
            {"X-Plex-Container-Start": 0, "X-Plex-Container-Size": limit},
            "recently added",
        )

    async def fetch_history_window(self, days_back: int) -> RecordBatch:
        since = int(self._clock()) - days_back * DAY_SECONDS
        batch = await self._metadata(
            "/status/sessions/history/all",
            {
                "sort": "viewedAt:desc",
                "X-Plex-Container-Start": 0,
                "X-Plex-Container-Size": self._settings.history_window_limit,
            },
            "history window",
        )
        if not batch.ok:
            return batch
        batch.items = [
            item
            for item in batch.items
            if (coerce_int(item.get("viewedAt")) or 0) >= since
        ]
        return batch

    async def server_info(self) -> dict[str, Any]:
        if not self.configured:
            raise RuntimeError("plex not configured")
        result = await self._request("/")
        container = (
            result.data.get("MediaContainer") if isinstance(result.data, dict) else None
        )
        if not result.ok or not isinstance(container, dict):
            raise RuntimeError(f"plex: {result.error or 'unexpected response'}")
        return {
            "version": container.get("version"),
            "name": container.get("friendlyName"),
            "id": container.get("machineIdentifier"),
        }

    def image_credentials(self) -> dict[str, tuple[str | None, ImageAuth]]:
        if not self.configured:
            return {}
        return {
            "plex": (
                self._settings.plex_url,
                ImageAuth(headers={"X-Plex-Token": self._settings.plex_token or ""}),
            )
        }
