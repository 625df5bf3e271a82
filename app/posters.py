"""Poster URL building that keeps upstream credentials server-side."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping
from urllib.parse import parse_qsl, quote, urlencode, urlsplit, urlunsplit

from .utils import dig

DEFAULT_PROXY_PATH = "/api/media/img"

ABSOLUTE_IMAGE_FIELDS: tuple[str, ...] = (
    "poster_url",
    "posterUrl",
    "image_url",
    "imageUrl",
)
EPISODE_THUMB_FIELDS: tuple[str, ...] = (
    "grandparent_thumb",
    "grandparentThumb",
    "parent_thumb",
    "parentThumb",
    "thumb",
)
THUMB_FIELDS: tuple[str, ...] = (
    "thumb",
    "parent_thumb",
    "parentThumb",
    "grandparent_thumb",
    "grandparentThumb",
)
JELLYFIN_IMAGE_TAGS: tuple[str, ...] = ("ImageTags.Primary", "ImageTags.Thumb")

CREDENTIAL_PARAMS = frozenset(
    {"x-plex-token", "api_key", "apikey", "token", "access_token"}
)


@dataclass(frozen=True, slots=True)
class CredentialContext:
    """Describes where a backend serves artwork, without holding its secret.

    ``image_template`` is formatted with ``base`` (the backend base URL),
    ``path`` (the relative image path) and ``path_q`` (the path URL-encoded).
    """

    tag: str
    base_url: str | None
    configured: bool
    image_template: str = "{base}{path}"

    def upstream_url(self, path: str) -> str | None:
        if not (self.configured and self.base_url):
            return None
        if not path.startswith("/"):
            path = f"/{path}"
        return self.image_template.format(
            base=self.base_url, path=path, path_q=quote(path, safe="")
        )


def belongs_to(url: str, base_url: str | None) -> bool:
    """Return whether ``url`` points at the server rooted at ``base_url``."""

    if not base_url:
        return False
    target = urlsplit(url)
    base = urlsplit(base_url)
    if (target.scheme.lower(), target.netloc.lower()) != (
        base.scheme.lower(),
        base.netloc.lower(),
    ):
        return False
    base_path = base.path.rstrip("/")
    return not base_path or target.path == base_path or target.path.startswith(
        f"{base_path}/"
    )


def strip_credentials(url: str) -> str:
    """Drop query parameters that commonly carry upstream secrets."""

    parts = urlsplit(url)
    if not parts.query:
        return url
    query = [
        (key, value)
        for key, value in parse_qsl(parts.query, keep_blank_values=True)
        if key.lower() not in CREDENTIAL_PARAMS
    ]
    return urlunsplit(parts._replace(query=urlencode(query)))


def proxy_reference(
    url: str, *, auth: str | None = None, proxy_path: str = DEFAULT_PROXY_PATH
) -> str:
    reference = f"{proxy_path}?u={quote(url, safe='')}"
    if auth:
        reference = f"{reference}&auth={auth}"
    return reference


def _is_absolute(value: str) -> bool:
    return value.lower().startswith(("http://", "https://"))


def _image_reference(record: Mapping[str, Any]) -> str | None:
    for path in ABSOLUTE_IMAGE_FIELDS:
        value = dig(record, path)
        if isinstance(value, str) and _is_absolute(value.strip()):
            return value.strip()

    media_type = str(record.get("media_type") or record.get("type") or "").lower()
    fields = EPISODE_THUMB_FIELDS if media_type == "episode" else THUMB_FIELDS
    for path in fields:
        value = dig(record, path)
        if isinstance(value, str) and value.strip():
            return value.strip()

    item_id = record.get("Id")
    if item_id:
        for path in JELLYFIN_IMAGE_TAGS:
            tag = dig(record, path)
            if tag:
                return (
                    f"/Items/{item_id}/Images/Primary"
                    f"?height=450&width=300&quality=96&tag={tag}"
                )
    return None


def build_poster(
    record: Mapping[str, Any],
    credentials: CredentialContext,
    *,
    proxy_path: str = DEFAULT_PROXY_PATH,
) -> str | None:
    """Return an internal image-proxy reference for the record's artwork."""

    if not credentials.configured or not isinstance(record, Mapping):
        return None
    reference = _image_reference(record)
    if reference is None:
        return None

    if _is_absolute(reference):
        cleaned = strip_credentials(reference)
        auth = credentials.tag if belongs_to(cleaned, credentials.base_url) else None
        return proxy_reference(cleaned, auth=auth, proxy_path=proxy_path)

    upstream = credentials.upstream_url(reference)
    if upstream is None:
        return None
    return proxy_reference(upstream, auth=credentials.tag, proxy_path=proxy_path)
