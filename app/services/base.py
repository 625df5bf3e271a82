"""Shared contract for the upstream media backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Mapping

import httpx

from ..config import Settings
from ..models import RecordBatch
from ..posters import CredentialContext, belongs_to


@dataclass(slots=True)
class ImageAuth:
    """Credentials the image proxy attaches when dereferencing artwork."""

    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, str] = field(default_factory=dict)


class UpstreamAdapter(ABC):
    """One configured media backend feeding the generic list and chart code."""

    name: str = "upstream"
    default_watched_limit: int = 12
    default_added_limit: int = 10

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        self._settings = settings
        self._client = http_client

    @property
    @abstractmethod
    def configured(self) -> bool:
        """Whether the credentials needed for list endpoints are present."""

    @property
    @abstractmethod
    def credentials(self) -> CredentialContext:
        """Artwork location used by the poster builder."""

    def has_been_played(self, record: Mapping[str, Any]) -> bool:
        return True

    @abstractmethod
    async def fetch_recent_plays(self, limit: int) -> RecordBatch:
        ...

    @abstractmethod
    async def fetch_recently_added(self, limit: int) -> RecordBatch:
        ...

    @abstractmethod
    async def fetch_history_window(self, days_back: int) -> RecordBatch:
        ...

    @abstractmethod
    async def server_info(self) -> dict[str, Any]:
        """Return basic upstream server details, raising ``RuntimeError`` on failure."""

    def image_credentials(self) -> dict[str, tuple[str | None, ImageAuth]]:
        """Map auth tags to ``(base_url, credentials)`` for the image proxy."""

        return {}

    def authorize_image(self, url: str, tag: str | None) -> ImageAuth | None:
        """Return credentials for ``url`` when it lives on the tagged backend."""

        if not tag:
            return None
        entry = self.image_credentials().get(tag)
        if entry is None:
            return None
        base_url, auth = entry
        if not belongs_to(url, base_url):
            return None
        return auth

    def not_configured(self) -> RecordBatch:
        return RecordBatch(warning=f"{self.name} not configured", fetched=False)

    def failure(self, error: str | None) -> RecordBatch:
        return RecordBatch(
            warning=f"{self.name}: {error or 'unknown error'}", fetched=False
        )
