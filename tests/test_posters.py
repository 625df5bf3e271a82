"""Poster URL building never leaks upstream credentials."""

from __future__ import annotations

from urllib.parse import parse_qs, urlsplit

import pytest

from app.posters import CredentialContext, belongs_to, build_poster
from app.services.tautulli import PMS_IMAGE_TEMPLATE

SECRETS = ("jf-secret-token", "px-secret-token", "tt-secret-key")

JELLYFIN = CredentialContext(
    tag="jellyfin", base_url="http://jellyfin.local:8096", configured=True
)
PLEX = CredentialContext(tag="plex", base_url="http://plex.local:32400", configured=True)
TAUTULLI = CredentialContext(
    tag="tautulli",
    base_url="http://tautulli.local:8181",
    configured=True,
    image_template=PMS_IMAGE_TEMPLATE,
)


def _proxied(reference: str) -> tuple[str, str | None]:
    parts = urlsplit(reference)
    query = parse_qs(parts.query)
    assert parts.path == "/api/media/img"
    return query["u"][0], query.get("auth", [None])[0]


def test_jellyfin_item_tags_build_image_url() -> None:
    record = {"Id": "abc123", "ImageTags": {"Primary": "tag9"}}

    upstream, auth = _proxied(build_poster(record, JELLYFIN))

    assert upstream == (
        "http://jellyfin.local:8096/Items/abc123/Images/Primary"
        "?height=450&width=300&quality=96&tag=tag9"
    )
    assert auth == "jellyfin"


def test_plex_relative_thumb_prefers_show_art_for_episodes() -> None:
    record = {
        "type": "episode",
        "thumb": "/library/metadata/20/thumb/1",
        "grandparentThumb": "/library/metadata/7/thumb/1",
    }

    upstream, auth = _proxied(build_poster(record, PLEX))

    assert upstream == "http://plex.local:32400/library/metadata/7/thumb/1"
    assert auth == "plex"


def test_tautulli_relative_thumb_uses_image_proxy_command() -> None:
    record = {"media_type": "movie", "thumb": "/library/metadata/55/thumb/99"}

    upstream, auth = _proxied(build_poster(record, TAUTULLI))
    parts = urlsplit(upstream)
    query = parse_qs(parts.query)

    assert parts.netloc == "tautulli.local:8181"
    assert query["cmd"] == ["pms_image_proxy"]
    assert query["img"] == ["/library/metadata/55/thumb/99"]
    assert "apikey" not in query
    assert auth == "tautulli"


def test_absolute_external_url_has_no_auth_tag() -> None:
    record = {"poster_url": "https://images.example.com/p/dune.jpg"}

    upstream, auth = _proxied(build_poster(record, PLEX))

    assert upstream == "https://images.example.com/p/dune.jpg"
    assert auth is None


def test_absolute_upstream_url_is_scrubbed_and_tagged() -> None:
    record = {
        "thumb": "http://plex.local:32400/photo/:/transcode?url=x&X-Plex-Token=px-secret-token"
    }

    reference = build_poster(record, PLEX)
    upstream, auth = _proxied(reference)

    assert "px-secret-token" not in reference
    assert "X-Plex-Token" not in upstream
    assert auth == "plex"


@pytest.mark.parametrize("context", [JELLYFIN, PLEX, TAUTULLI])
@pytest.mark.parametrize(
    "record",
    [
        {"Id": "1", "ImageTags": {"Thumb": "t"}},
        {"thumb": "/library/metadata/1/thumb/2"},
        {"image_url": "https://cdn.example.com/a.jpg?api_key=tt-secret-key"},
        {"thumb": "http://jellyfin.local:8096/Items/1/Images/Primary?token=jf-secret-token"},
    ],
)
def test_no_secret_in_returned_reference(context, record) -> None:
    reference = build_poster(record, context)

    assert reference is not None
    assert not any(secret in reference for secret in SECRETS)


def test_missing_image_or_credentials_return_none() -> None:
    unconfigured = CredentialContext(tag="plex", base_url=None, configured=False)

    assert build_poster({"title": "No art"}, PLEX) is None
    assert build_poster({"thumb": "/library/metadata/1/thumb/2"}, unconfigured) is None
    assert build_poster({"poster_url": "https://x.example/a.jpg"}, unconfigured) is None


def test_belongs_to_compares_origin_and_path() -> None:
    assert belongs_to("http://plex.local:32400/library/x", "http://plex.local:32400")
    assert belongs_to("http://host/jf/Items/1", "http://host/jf")
    assert not belongs_to("http://host/jfx/Items/1", "http://host/jf")
    assert not belongs_to("https://plex.local:32400/x", "http://plex.local:32400")
    assert not belongs_to("http://evil.example/x", "http://plex.local:32400")
    assert not belongs_to("http://plex.local:32400/x", None)
