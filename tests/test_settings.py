"""Configuration settings behaviour tests."""

from __future__ import annotations

from datetime import timezone

import pytest
from pydantic import ValidationError

from helpers import build_settings


def test_defaults_select_jellyfin_without_credentials() -> None:
    settings = build_settings()

    assert settings.media_backend == "jellyfin"
    assert settings.has_jellyfin is False
    assert settings.timeout_ms == 1500
    assert settings.timeout_seconds == pytest.approx(1.5)
    assert settings.public_prefix == "/api/media"


def test_base_urls_lose_trailing_slashes() -> None:
    settings = build_settings(
        JELLYFIN_URL="http://jellyfin:8096/ ",
        PLEX_URL="http://plex:32400//",
        TAUTULLI_URL="   ",
    )

    assert settings.jellyfin_url == "http://jellyfin:8096"
    assert settings.plex_url == "http://plex:32400"
    assert settings.tautulli_url is None


def test_backend_name_is_case_insensitive() -> None:
    settings = build_settings(MEDIA_BACKEND="Tautulli")

    assert settings.media_backend == "tautulli"


def test_unknown_backend_rejected() -> None:
    with pytest.raises(ValidationError):
        build_settings(MEDIA_BACKEND="kodi")


def test_legacy_database_path_alias() -> None:
    settings = build_settings(JELLYFIN_DB_PATH="/data/playback_reporting.db")

    assert settings.playback_db_path == "/data/playback_reporting.db"
    assert settings.has_playback_db is True


def test_credentials_flags_require_every_value() -> None:
    settings = build_settings(
        JELLYFIN_URL="http://jellyfin:8096",
        JELLYFIN_TOKEN="token",
        PLEX_URL="http://plex:32400",
    )

    assert settings.has_jellyfin is False
    assert settings.has_plex is False


def test_timezone_resolution() -> None:
    assert build_settings().timezone is None
    utc = build_settings(TIMEZONE="UTC").timezone
    assert utc is not None
    assert utc.utcoffset(None) == timezone.utc.utcoffset(None)

    with pytest.raises(ValidationError, match="Unknown TIMEZONE"):
        build_settings(TIMEZONE="Mars/Olympus_Mons")


def test_public_prefix_normalised() -> None:
    settings = build_settings(PUBLIC_PREFIX="media/api/")

    assert settings.public_prefix == "/media/api"
