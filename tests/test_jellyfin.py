"""Tests for the Jellyfin adapter."""

from __future__ import annotations

import httpx
import pytest

from app.database import PlaybackStore
from app.services.jellyfin import JellyfinAdapter

from helpers import build_settings, jellyfin_settings, mock_client


@pytest.mark.anyio("asyncio")
async def test_recent_plays_request_shape() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"Items": [{"Name": "Alien"}], "TotalRecordCount": 1})

    async with mock_client(handler) as client:
        adapter = JellyfinAdapter(jellyfin_settings(), client)
        batch = await adapter.fetch_recent_plays(5)

    assert batch.ok is True
    assert batch.items == [{"Name": "Alien"}]
    request = requests[0]
    assert request.url.path == "/Users/user-1/Items"
    assert request.url.params["SortBy"] == "DatePlayed"
    assert request.url.params["Limit"] == "5"
    assert request.headers["Authorization"] == 'MediaBrowser Token="jf-secret-token"'


@pytest.mark.anyio("asyncio")
async def test_recently_added_accepts_bare_list() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/Users/user-1/Items/Latest"
        return httpx.Response(200, json=[{"Name": "One"}, {"Name": "Two"}, "junk"])

    async with mock_client(handler) as client:
        adapter = JellyfinAdapter(jellyfin_settings(), client)
        batch = await adapter.fetch_recently_added(10)

    assert [item["Name"] for item in batch.items] == ["One", "Two"]


@pytest.mark.anyio("asyncio")
async def test_upstream_failure_becomes_warning() -> None:
    async with mock_client(lambda request: httpx.Response(503)) as client:
        adapter = JellyfinAdapter(jellyfin_settings(), client)
        batch = await adapter.fetch_recent_plays(5)

    assert batch.ok is False
    assert batch.fetched is False
    assert batch.warning == "jellyfin: 503 Service Unavailable"


@pytest.mark.anyio("asyncio")
async def test_unconfigured_adapter_skips_network() -> None:
    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover - must not run
        raise AssertionError("no request expected")

    async with mock_client(handler) as client:
        adapter = JellyfinAdapter(build_settings(), client)
        batch = await adapter.fetch_recently_added(5)

    assert batch.warning == "jellyfin not configured"


@pytest.mark.anyio("asyncio")
async def test_history_window_without_database_path() -> None:
    async with mock_client(lambda request: httpx.Response(200, json={})) as client:
        adapter = JellyfinAdapter(jellyfin_settings(), client, PlaybackStore(None))
        batch = await adapter.fetch_history_window(7)

    assert batch.items == []
    assert batch.warning == "PLAYBACK_DB_PATH not configured"


@pytest.mark.anyio("asyncio")
async def test_server_info_maps_fields() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/System/Info"
        return httpx.Response(
            200, json={"Version": "10.9.1", "ServerName": "den", "Id": "srv-1"}
        )

    async with mock_client(handler) as client:
        info = await JellyfinAdapter(jellyfin_settings(), client).server_info()

    assert info == {"version": "10.9.1", "name": "den", "id": "srv-1"}


def test_played_predicate_and_image_authorisation() -> None:
    adapter = JellyfinAdapter(jellyfin_settings(), httpx.AsyncClient())

    assert adapter.has_been_played({"UserData": {"LastPlayedDate": "2024-01-01T00:00:00Z"}})
    assert not adapter.has_been_played({"UserData": {"PlayCount": 0}})

    auth = adapter.authorize_image(
        "http://jellyfin.local:8096/Items/1/Images/Primary", "jellyfin"
    )
    assert auth is not None
    assert auth.headers["Authorization"] == 'MediaBrowser Token="jf-secret-token"'
    assert adapter.authorize_image("http://evil.example/steal", "jellyfin") is None
    assert adapter.authorize_image("http://jellyfin.local:8096/x", "plex") is None
