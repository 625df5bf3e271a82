"""Adapter for the Tautulli playback-statistics API, optionally paired with Plex."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import httpx

from ..config import Settings
from ..models import RecordBatch
from ..posters import CredentialContext
from ..utils import extract_records
from .base import ImageAuth, UpstreamAdapter
from .http import fetch_json
from .plex import PlexAdapter

logger = logging.getLogger(__name__)

PMS_IMAGE_TEMPLATE = (
    "{base}/api/v2?cmd=pms_image_proxy&img={path_q}&width=300&height=450&fallback=poster"
)


class TautulliAdapter(UpstreamAdapter):
    """Plays and history from Tautulli; additions and artwork via Plex when set."""

    name = "tautulli"

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient,
        plex: PlexAdapter | None = None,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(settings, http_client)
        self._plex = plex if plex is not None else PlexAdapter(settings, http_client, clock)
        self._clock = clock

    @property
    def configured(self) -> bool:
        return self._settings.has_tautulli

    @property
    def credentials(self) -> CredentialContext:
        if self._plex.configured:
            return self._plex.credentials
        return CredentialContext(
            tag="tautulli",
            base_url=self._settings.tautulli_url,
            configured=self.configured,
            image_template=PMS_IMAGE_TEMPLATE,
        )

    async def _command(self, cmd: str, **params: Any) -> tuple[Any, str | None]:
        """Run an ``api/v2`` command returning ``(data, error)``."""

        result = await fetch_json(
            self._client,
            f"{self._settings.tautulli_url}/api/v2",
            params={"apikey": self._settings.tautulli_api_key, "cmd": cmd, **params},
        )
        if not result.ok:
            return None, result.error
        envelope = result.data.get("response") if isinstance(result.data, dict) else None
        if not isinstance(envelope, dict):
            return None, "unexpected response"
        if envelope.get("result") != "success":
            return None, str(envelope.get("message") or "request failed")
        return envelope.get("data"), None

    async def _history(self, **params: Any) -> RecordBatch:
        if not self.configured:
            return self.not_configured()
        data, error = await self._command(
            "get_history", order_column="date", order_dir="desc", **params
        )
        if error:
            logger.warning("Tautulli get_history failed: %s", error)
            return self.failure(error)
        return RecordBatch(items=extract_records(data, "data"))

    async def fetch_recent_plays(self, limit: int) -> RecordBatch:
        return await self._history(length=limit)

    async def fetch_recently_added(self, limit: int) -> RecordBatch:
        if self._plex.configured:
            return await self._plex.fetch_recently_added(limit)
        if not self.configured:
            return self.not_configured()
        data, error = await self._command("get_recently_added", count=limit)
        if error:
            logger.warning("Tautulli get_recently_added failed: %s", error)
            return self.failure(error)
        return RecordBatch(items=extract_records(data, "recently_added"))

    async def fetch_history_window(self, days_back: int) -> RecordBatch:
        now = datetime.fromtimestamp(self._clock(), tz=timezone.utc)
        after = (now - timedelta(days=days_back)).date().isoformat()
        return await self._history(
            after=after, length=self._settings.history_window_limit
        )

    async def server_info(self) -> dict[str, Any]:
        if not self.configured:
            raise RuntimeError("tautulli not configured")
        data, error = await self._command("get_server_info")
        if error or not isinstance(data, dict):
            raise RuntimeError(f"tautulli: {error or 'unexpected response'}")
        return {
            "version": data.get("pms_version"),
            "name": data.get("pms_name"),
            "id": data.get("pms_identifier"),
        }

    def image_credentials(self) -> dict[str, tuple[str | None, ImageAuth]]:
        entries = dict(self._plex.image_credentials())
        if self.configured:
            entries["tautulli"] = (
                self._settings.tautulli_url,
                ImageAuth(params={"apikey": self._settings.tautulli_api_key or ""}),
            )
        return entries
