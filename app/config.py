"""Application configuration models."""

from __future__ import annotations

from datetime import tzinfo
from functools import lru_cache
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


BackendName = Literal["jellyfin", "tautulli", "plex"]


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="media-proxy", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=8080, alias="PORT")
    environment: Literal["development", "production"] = Field(
        default="production", alias="ENVIRONMENT"
    )
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    media_backend: BackendName = Field(default="jellyfin", alias="MEDIA_BACKEND")

    jellyfin_url: str | None = Field(default=None, alias="JELLYFIN_URL")
    jellyfin_token: str | None = Field(default=None, alias="JELLYFIN_TOKEN")
    jellyfin_user_id: str | None = Field(default=None, alias="JELLYFIN_USER_ID")
    playback_db_path: str | None = Field(
        default=None,
        alias="PLAYBACK_DB_PATH",
        validation_alias=AliasChoices("PLAYBACK_DB_PATH", "JELLYFIN_DB_PATH"),
    )

    tautulli_url: str | None = Field(default=None, alias="TAUTULLI_URL")
    tautulli_api_key: str | None = Field(default=None, alias="TAUTULLI_API_KEY")

    plex_url: str | None = Field(default=None, alias="PLEX_URL")
    plex_token: str | None = Field(default=None, alias="PLEX_TOKEN")

    timeout_ms: int = Field(default=1_500, alias="TIMEOUT_MS", ge=100, le=60_000)
    watched_cache_seconds: float = Field(
        default=15, alias="WATCHED_CACHE_SECONDS", ge=0
    )
    added_cache_seconds: float = Field(default=30, alias="ADDED_CACHE_SECONDS", ge=0)
    activity_cache_seconds: float = Field(
        default=30, alias="ACTIVITY_CACHE_SECONDS", ge=0
    )
    history_window_limit: int = Field(
        default=1_000, alias="HISTORY_WINDOW_LIMIT", ge=1, le=10_000
    )

    timezone_name: str | None = Field(default=None, alias="TIMEZONE")
    placeholder_image: str = Field(
        default="/placeholder-poster.jpg", alias="PLACEHOLDER_IMAGE"
    )
    public_prefix: str = Field(default="/api/media", alias="PUBLIC_PREFIX")

    @field_validator("jellyfin_url", "tautulli_url", "plex_url", mode="before")
    @classmethod
    def _normalise_base_url(cls, value: object) -> str | None:
        """Strip whitespace and trailing slashes from upstream base URLs."""

        if value is None:
            return None
        text = str(value).strip().rstrip("/")
        return text or None

    @field_validator(
        "jellyfin_token",
        "jellyfin_user_id",
        "playback_db_path",
        "tautulli_api_key",
        "plex_token",
        "timezone_name",
        mode="before",
    )
    @classmethod
    def _blank_to_none(cls, value: object) -> str | None:
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    @field_validator("media_backend", mode="before")
    @classmethod
    def _lower_backend(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("timezone_name")
    @classmethod
    def _check_timezone(cls, value: str | None) -> str | None:
        if value is None:
            return None
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown TIMEZONE {value!r}") from exc
        return value

    @field_validator("public_prefix")
    @classmethod
    def _normalise_prefix(cls, value: str) -> str:
        prefix = "/" + value.strip().strip("/")
        return prefix.rstrip("/") or "/api/media"

    @property
    def has_jellyfin(self) -> bool:
        return bool(self.jellyfin_url and self.jellyfin_token and self.jellyfin_user_id)

    @property
    def has_tautulli(self) -> bool:
        return bool(self.tautulli_url and self.tautulli_api_key)

    @property
    def has_plex(self) -> bool:
        return bool(self.plex_url and self.plex_token)

    @property
    def has_playback_db(self) -> bool:
        return bool(self.playback_db_path)

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000

    @property
    def timezone(self) -> tzinfo | None:
        """Return the configured zone, or ``None`` for the system local time."""

        if self.timezone_name is None:
            return None
        return ZoneInfo(self.timezone_name)

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]
