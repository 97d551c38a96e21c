"""Tests for library storage (audiomab/library.py)."""

from __future__ import annotations

import json

import pytest

from audiocore.models import Playlist, Track
from audiomab import library
from audiomab.db import close_db, init_db


@pytest.fixture(autouse=True)
def _override_db_path(monkeypatch, tmp_path):
    monkeypatch.setenv("DB_PATH", str(tmp_path / "test.db"))
    from audiomab.config import get_settings
    get_settings.cache_clear()


@pytest.fixture
async def db():
    conn = await init_db()
    yield conn
    await close_db()


def _track(video_id: str) -> Track:
    return Track(id=video_id, videoId=video_id, title=f"Title {video_id}", artist="A")


# ---------------------------------------------------------------------------
# Playlists
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_save_and_get_playlist(db):
    saved = await library.save_playlist(Playlist(id="p1", title="Mine", tracks=[_track("a")]))
    loaded = await library.get_playlist("p1")
    assert loaded == saved
    assert loaded.tracks[0].videoId == "a"


@pytest.mark.asyncio
async def test_save_replaces_whole_playlist(db):
    await library.save_playlist(Playlist(id="p1", title="Old", tracks=[_track("a"), _track("b")]))
    await library.save_playlist(Playlist(id="p1", title="New", tracks=[_track("c")]))
    loaded = await library.get_playlist("p1")
    assert loaded.title == "New"
    assert [t.id for t in loaded.tracks] == ["c"]
    assert len(await library.list_playlists()) == 1


@pytest.mark.asyncio
async def test_missing_playlist(db):
    assert await library.get_playlist("nope") is None
    assert not await library.delete_playlist("nope")
    assert await library.add_track_to_playlist("nope", _track("a")) is None


@pytest.mark.asyncio
async def test_add_and_remove_track(db):
    await library.save_playlist(Playlist(id="p1", title="Mine"))
    await library.add_track_to_playlist("p1", _track("a"))
    await library.add_track_to_playlist("p1", _track("b"))
    playlist = await library.add_track_to_playlist("p1", _track("a"))
    assert [t.id for t in playlist.tracks] == ["a", "b"]
    assert playlist.thumbnail == _track("a").thumbnail

    playlist = await library.remove_track_from_playlist("p1", "a")
    assert [t.id for t in playlist.tracks] == ["b"]


@pytest.mark.asyncio
async def test_delete_playlist(db):
    await library.save_playlist(Playlist(id="p1"))
    assert await library.delete_playlist("p1")
    assert await library.list_playlists() == []


# ---------------------------------------------------------------------------
# Favorites
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_toggle_favorite(db):
    track = _track("a")
    assert await library.toggle_favorite(track) is True
    assert await library.is_favorite("a")
    assert [t.id for t in await library.list_favorites()] == ["a"]
    assert await library.toggle_favorite(track) is False
    assert await library.list_favorites() == []


# ---------------------------------------------------------------------------
# Recently played
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_recent_is_most_recent_first_and_deduplicated(db):
    for vid in ("a", "b", "c", "a"):
        await library.add_recent(_track(vid), limit=50)
    assert [t.id for t in await library.list_recent()] == ["a", "c", "b"]


@pytest.mark.asyncio
async def test_recent_is_capped(db):
    for i in range(7):
        await library.add_recent(_track(f"v{i}"), limit=5)
    recent = [t.id for t in await library.list_recent()]
    assert recent == ["v6", "v5", "v4", "v3", "v2"]


# ---------------------------------------------------------------------------
# Export / import / clear
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_export_then_import_into_empty_library(db):
    await library.save_playlist(Playlist(id="p1", title="Mine", tracks=[_track("a")]))
    await library.toggle_favorite(_track("f"))
    exported = await library.export_json()
    assert "audioUrl" not in exported

    await library.clear_all()
    assert await library.list_playlists() == []

    playlists, favorites = await library.import_json(exported)
    assert (playlists, favorites) == (1, 1)
    assert (await library.get_playlist("p1")).title == "Mine"
    assert await library.is_favorite("f")


@pytest.mark.asyncio
async def test_import_skips_existing_favorites(db):
    await library.toggle_favorite(_track("f"))
    raw = json.dumps({"favorites": [_track("f").model_dump(), _track("g").model_dump()]})
    _, added = await library.import_json(raw)
    assert added == 1
    assert await library.is_favorite("f")


@pytest.mark.asyncio
async def test_import_rejects_garbage(db):
    with pytest.raises(ValueError):
        await library.import_json("not json")


@pytest.mark.asyncio
async def test_clear_all_leaves_audio_cache(db):
    await db.execute("INSERT INTO audio_cache (video_id, blob) VALUES (?, ?)", ("v", b"x"))
    await db.commit()
    await library.add_recent(_track("a"), limit=10)
    await library.clear_all()
    assert await library.list_recent() == []
    cursor = await db.execute("SELECT COUNT(*) FROM audio_cache")
    assert (await cursor.fetchone())[0] == 1
