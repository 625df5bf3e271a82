"""Shared builders for settings and fake upstream clients."""

from __future__ import annotations

from typing import Any, Callable

import httpx

from app.config import Settings

NOW = 1_718_000_000.0  # 2024-06-10T06:13:20Z
NOW_MS = int(NOW * 1000)
DAY_MS = 86_400_000


def build_settings(**overrides: Any) -> Settings:
    """Return a settings object that ignores any local ``.env`` file."""

    return Settings(_env_file=None, **overrides)  # type: ignore[arg-type]


def jellyfin_settings(**overrides: Any) -> Settings:
    base = {
        "MEDIA_BACKEND": "jellyfin",
        "JELLYFIN_URL": "http://jellyfin.local:8096",
        "JELLYFIN_TOKEN": "jf-secret-token",
        "JELLYFIN_USER_ID": "user-1",
        "TIMEZONE": "UTC",
    }
    base.update(overrides)
    return build_settings(**base)


def tautulli_settings(**overrides: Any) -> Settings:
    base = {
        "MEDIA_BACKEND": "tautulli",
        "TAUTULLI_URL": "http://tautulli.local:8181",
        "TAUTULLI_API_KEY": "tt-secret-key",
        "TIMEZONE": "UTC",
    }
    base.update(overrides)
    return build_settings(**base)


def plex_settings(**overrides: Any) -> Settings:
    base = {
        "MEDIA_BACKEND": "plex",
        "PLEX_URL": "http://plex.local:32400",
        "PLEX_TOKEN": "px-secret-token",
        "TIMEZONE": "UTC",
    }
    base.update(overrides)
    return build_settings(**base)


def mock_client(
    handler: Callable[[httpx.Request], httpx.Response],
) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))
