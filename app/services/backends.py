"""Select the upstream adapter named by the configuration."""

from __future__ import annotations

import time
from typing import Callable

import httpx

from ..config import Settings
from ..database import PlaybackStore
from .base import UpstreamAdapter
from .jellyfin import JellyfinAdapter
from .plex import PlexAdapter
from .tautulli import TautulliAdapter


def build_adapter(
    settings: Settings,
    http_client: httpx.AsyncClient,
    *,
    playback_store: PlaybackStore | None = None,
    clock: Callable[[], float] = time.time,
) -> UpstreamAdapter:
    backend = settings.media_backend
    if backend == "jellyfin":
        return JellyfinAdapter(settings, http_client, playback_store)
    if backend == "tautulli":
        return TautulliAdapter(settings, http_client, clock=clock)
    if backend == "plex":
        return PlexAdapter(settings, http_client, clock=clock)
    raise ValueError(f"Unsupported media backend: {backend}")
