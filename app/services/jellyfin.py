"""Adapter for the Jellyfin media index API."""

from __future__ import annotations

import logging
from typing import Any, Mapping

import httpx

from ..config import Settings
from ..database import PlaybackStore
from ..models import RecordBatch
from ..posters import CredentialContext
from ..utils import dig, extract_records
from .base import ImageAuth, UpstreamAdapter
from .http import fetch_json

logger = logging.getLogger(__name__)

ITEM_FIELDS = "BasicSyncInfo,CanDelete,PrimaryImageAspectRatio,ProductionYear"


class JellyfinAdapter(UpstreamAdapter):
    """Recent plays and additions from Jellyfin, history from Playback Reporting."""

    name = "jellyfin"

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient,
        playback_store: PlaybackStore | None = None,
    ):
        super().__init__(settings, http_client)
        self._store = playback_store or PlaybackStore(settings.playback_db_path)

    @property
    def configured(self) -> bool:
        return self._settings.has_jellyfin

    @property
    def credentials(self) -> CredentialContext:
        return CredentialContext(
            tag="jellyfin",
            base_url=self._settings.jellyfin_url,
            configured=self.configured,
        )

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f'MediaBrowser Token="{self._settings.jellyfin_token}"',
            "Accept": "application/json",
        }

    async def _request(self, path: str, params: Mapping[str, Any] | None = None):
        url = f"{self._settings.jellyfin_url}{path}"
        return await fetch_json(self._client, url, params=params, headers=self._headers())

    def has_been_played(self, record: Mapping[str, Any]) -> bool:
        return bool(dig(record, "UserData.LastPlayedDate"))

    async def fetch_recent_plays(self, limit: int) -> RecordBatch:
        if not self.configured:
            return self.not_configured()
        result = await self._request(
            f"/Users/{self._settings.jellyfin_user_id}/Items",
            {
                "SortBy": "DatePlayed",
                "SortOrder": "Descending",
                "Limit": limit,
                "Recursive": "true",
                "Fields": ITEM_FIELDS,
                "ImageTypeLimit": 1,
                "EnableImageTypes": "Primary,Backdrop,Thumb",
                "IncludeItemTypes": "Movie,Episode",
            },
        )
        if not result.ok:
            logger.warning("Jellyfin recently played request failed: %s", result.error)
            return self.failure(result.error)
        return RecordBatch(items=extract_records(result.data, "Items"))

    async def fetch_recently_added(self, limit: int) -> RecordBatch:
        if not self.configured:
            return self.not_configured()
        result = await self._request(
            f"/Users/{self._settings.jellyfin_user_id}/Items/Latest",
            {
                "Limit": limit,
                "Fields": ITEM_FIELDS,
                "ImageTypeLimit": 1,
                "EnableImageTypes": "Primary,Backdrop,Thumb",
            },
        )
        if not result.ok:
            logger.warning("Jellyfin latest items request failed: %s", result.error)
            return self.failure(result.error)
        return RecordBatch(items=extract_records(result.data, "Items"))

    async def fetch_history_window(self, days_back: int) -> RecordBatch:
        return await self._store.fetch_events(days_back)

    async def server_info(self) -> dict[str, Any]:
        if not self.configured:
            raise RuntimeError("jellyfin not configured")
        result = await self._request("/System/Info")
        if not result.ok or not isinstance(result.data, dict):
            raise RuntimeError(f"jellyfin: {result.error or 'unexpected response'}")
        data = result.data
        return {
            "version": data.get("Version"),
            "name": data.get("ServerName"),
            "id": data.get("Id"),
        }

    def image_credentials(self) -> dict[str, tuple[str | None, ImageAuth]]:
        if not self.configured:
            return {}
        return {
            "jellyfin": (
                self._settings.jellyfin_url,
                ImageAuth(
                    headers={
                        "Authorization": (
                            f'MediaBrowser Token="{self._settings.jellyfin_token}"'
                        )
                    }
                ),
            )
        }
