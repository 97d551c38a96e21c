"""Tests for the offline cache manager and its stores."""

from __future__ import annotations

import httpx
import pytest

from audiocore.models import CachedAudio, PlaylistInfo, Track
from audiomab.backend import AudioStreamHandle, Backend, BackendUnavailable
from audiomab.db import close_db, init_db
from audiomab.engine import AllBackendsUnavailable, ResolutionEngine
from audiomab.external import ExternalResolverBackend
from audiomab.offline_cache import MemoryCacheStore, OfflineCacheManager, SqliteCacheStore


@pytest.fixture(autouse=True)
def _override_db_path(monkeypatch, tmp_path):
    """Use a temporary database for every test."""
    monkeypatch.setenv("DB_PATH", str(tmp_path / "test.db"))
    from audiomab.config import get_settings
    get_settings.cache_clear()


@pytest.fixture
async def db():
    conn = await init_db()
    yield conn
    await close_db()


class StreamBackend(Backend):
    """Relays a fixed payload in small chunks; only ``open_stream`` is used."""

    def __init__(self, payload: bytes = b"", *, fail: bool = False,
                 content_type: str = "audio/webm", name: str = "relay"):
        self.name = name
        self.payload = payload
        self.fail = fail
        self.content_type = content_type
        self.opened: list[str] = []
        self.closed = 0

    async def fetch_video(self, video_id, *, timeout):
        raise BackendUnavailable(self.name, "not used")

    async def fetch_playlist(self, playlist_id, *, timeout):
        return PlaylistInfo(playlistId=playlist_id)

    async def search(self, query, limit, *, timeout):
        return []

    async def open_stream(self, video_id, *, timeout):
        self.opened.append(video_id)
        if self.fail:
            raise BackendUnavailable(self.name, "HTTP 503")

        async def chunks():
            for i in range(0, len(self.payload), 4):
                yield self.payload[i:i + 4]

        async def close():
            self.closed += 1

        return AudioStreamHandle(chunks(), content_type=self.content_type, close=close)


class BrokenBody(httpx.AsyncByteStream):
    """Sends a few bytes, then the connection drops."""

    async def __aiter__(self):
        yield b"partial"
        raise httpx.ReadError("connection reset")


def _broken_relay() -> ExternalResolverBackend:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/stream/abc123"
        return httpx.Response(200, headers={"content-type": "audio/webm"}, stream=BrokenBody())

    return ExternalResolverBackend("https://resolver.example", transport=httpx.MockTransport(handler))


def _manager(*backends: Backend, store=None) -> OfflineCacheManager:
    return OfflineCacheManager(store or MemoryCacheStore(), ResolutionEngine(list(backends)))


def _track(video_id: str = "abc123") -> Track:
    return Track(id=video_id, videoId=video_id, title="Song", artist="Artist")


# ---------------------------------------------------------------------------
# Manager
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_download_stores_full_payload():
    backend = StreamBackend(b"0123456789")
    cache = _manager(backend)

    entry = await cache.download(_track())

    assert entry.size == 10
    assert backend.closed == 1
    assert await cache.is_cached("abc123")
    stored = await cache.get_cached_blob("abc123")
    assert stored.blob == b"0123456789"
    assert (stored.title, stored.artist) == ("Song", "Artist")


@pytest.mark.asyncio
async def test_download_overwrites_stale_entry():
    store = MemoryCacheStore()
    await store.put(CachedAudio(key="abc123", blob=b"old"))
    cache = _manager(StreamBackend(b"new-bytes", content_type="audio/mp4"), store=store)

    await cache.download(_track())

    stored = await cache.get_cached_blob("abc123")
    assert stored.blob == b"new-bytes"
    assert stored.content_type == "audio/mp4"


@pytest.mark.asyncio
async def test_failed_download_leaves_previous_entry():
    store = MemoryCacheStore()
    await store.put(CachedAudio(key="abc123", blob=b"keep-me"))
    cache = _manager(StreamBackend(fail=True), store=store)

    with pytest.raises(AllBackendsUnavailable):
        await cache.download(_track())

    assert (await cache.get_cached_blob("abc123")).blob == b"keep-me"


@pytest.mark.asyncio
async def test_body_breaking_off_falls_through_to_next_backend():
    fallback = StreamBackend(b"whole-body", name="fallback")
    cache = _manager(_broken_relay(), fallback)

    entry = await cache.download(_track())

    assert entry.blob == b"whole-body"
    assert fallback.opened == ["abc123"]


@pytest.mark.asyncio
async def test_body_breaking_off_on_every_backend_is_unavailable():
    store = MemoryCacheStore()
    cache = _manager(_broken_relay(), store=store)

    with pytest.raises(AllBackendsUnavailable) as excinfo:
        await cache.download(_track())

    assert isinstance(excinfo.value.failures[0], BackendUnavailable)
    assert not await cache.is_cached("abc123")


@pytest.mark.asyncio
async def test_miss_and_remove():
    cache = _manager(StreamBackend(b"x"))
    assert not await cache.is_cached("nope")
    assert await cache.get_cached_blob("nope") is None
    await cache.download(_track("v1"))
    assert await cache.cached_ids() == ["v1"]
    assert await cache.remove("v1")
    assert not await cache.remove("v1")


# ---------------------------------------------------------------------------
# SQLite store
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_sqlite_store_roundtrip(db):
    store = SqliteCacheStore()
    await store.put(CachedAudio(key="v1", blob=b"\x00\x01audio", content_type="audio/ogg", title="T"))

    assert await store.has("v1")
    entry = await store.get("v1")
    assert entry.blob == b"\x00\x01audio"
    assert entry.content_type == "audio/ogg"
    assert entry.title == "T"


@pytest.mark.asyncio
async def test_sqlite_store_last_write_wins(db):
    store = SqliteCacheStore()
    await store.put(CachedAudio(key="v1", blob=b"first"))
    await store.put(CachedAudio(key="v1", blob=b"second"))

    assert (await store.get("v1")).blob == b"second"
    assert await store.keys() == ["v1"]


@pytest.mark.asyncio
async def test_sqlite_store_delete(db):
    store = SqliteCacheStore()
    await store.put(CachedAudio(key="v1", blob=b"x"))
    assert await store.delete("v1")
    assert not await store.has("v1")
    assert await store.get("v1") is None
    assert not await store.delete("v1")
