"""Local library storage — playlists, favorites, recently played.

Every value is stored as JSON and replaced whole on update.  Resolved
audio URLs never reach this module: only ``Track``/``Playlist`` models
are accepted.
"""

from __future__ import annotations

import logging
import time
from typing import List, Optional

from audiocore.exporter import export_library, import_library
from audiocore.models import Playlist, Track, now_iso
from audiomab.db import get_db

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Playlists
# ---------------------------------------------------------------------------

async def save_playlist(playlist: Playlist) -> Playlist:
    """Insert or replace a playlist, stamping ``updatedAt``."""
    stored = playlist.model_copy(update={"updatedAt": now_iso()})
    db = get_db()
    await db.execute(
        """
        INSERT INTO playlists (id, data, updated_at) VALUES (?, ?, ?)
        ON CONFLICT(id) DO UPDATE SET data = excluded.data, updated_at = excluded.updated_at
        """,
        (stored.id, stored.model_dump_json(), stored.updatedAt),
    )
    await db.commit()
    return stored


async def get_playlist(playlist_id: str) -> Optional[Playlist]:
    db = get_db()
    cursor = await db.execute("SELECT data FROM playlists WHERE id = ?", (playlist_id,))
    row = await cursor.fetchone()
    if not row:
        return None
    return Playlist.model_validate_json(row[0])


async def list_playlists() -> List[Playlist]:
    db = get_db()
    cursor = await db.execute("SELECT data FROM playlists ORDER BY updated_at DESC")
    return [Playlist.model_validate_json(row[0]) for row in await cursor.fetchall()]


async def delete_playlist(playlist_id: str) -> bool:
    db = get_db()
    cursor = await db.execute("DELETE FROM playlists WHERE id = ?", (playlist_id,))
    await db.commit()
    return cursor.rowcount > 0


async def add_track_to_playlist(playlist_id: str, track: Track) -> Optional[Playlist]:
    """Append *track* unless a track with the same id is already present."""
    playlist = await get_playlist(playlist_id)
    if playlist is None:
        return None
    if any(t.id == track.id for t in playlist.tracks):
        return playlist
    tracks = [*playlist.tracks, track]
    thumbnail = playlist.thumbnail or track.thumbnail
    return await save_playlist(playlist.model_copy(update={"tracks": tracks, "thumbnail": thumbnail}))


async def remove_track_from_playlist(playlist_id: str, track_id: str) -> Optional[Playlist]:
    playlist = await get_playlist(playlist_id)
    if playlist is None:
        return None
    tracks = [t for t in playlist.tracks if t.id != track_id]
    return await save_playlist(playlist.model_copy(update={"tracks": tracks}))


# ---------------------------------------------------------------------------
# Favorites
# ---------------------------------------------------------------------------

async def is_favorite(track_id: str) -> bool:
    db = get_db()
    cursor = await db.execute("SELECT 1 FROM favorites WHERE track_id = ?", (track_id,))
    return await cursor.fetchone() is not None


async def toggle_favorite(track: Track) -> bool:
    """Flip the favorite flag; returns the new state."""
    db = get_db()
    if await is_favorite(track.id):
        await db.execute("DELETE FROM favorites WHERE track_id = ?", (track.id,))
        await db.commit()
        return False
    await db.execute(
        "INSERT INTO favorites (track_id, data) VALUES (?, ?)",
        (track.id, track.model_dump_json()),
    )
    await db.commit()
    return True


async def list_favorites() -> List[Track]:
    db = get_db()
    cursor = await db.execute("SELECT data FROM favorites ORDER BY added_at DESC, rowid DESC")
    return [Track.model_validate_json(row[0]) for row in await cursor.fetchall()]


# ---------------------------------------------------------------------------
# Recently played
# ---------------------------------------------------------------------------

async def add_recent(track: Track, limit: int) -> None:
    """Record a play: most recent first, one row per track, at most *limit* rows."""
    db = get_db()
    cursor = await db.execute("SELECT MAX(played_at) FROM recently_played")
    row = await cursor.fetchone()
    # Strictly increasing so two plays within one clock tick keep their order.
    played_at = max(time.time(), (row[0] or 0.0) + 1e-6)
    await db.execute(
        """
        INSERT INTO recently_played (track_id, data, played_at) VALUES (?, ?, ?)
        ON CONFLICT(track_id) DO UPDATE SET data = excluded.data, played_at = excluded.played_at
        """,
        (track.id, track.model_dump_json(), played_at),
    )
    await db.execute(
        """
        DELETE FROM recently_played WHERE track_id NOT IN (
            SELECT track_id FROM recently_played ORDER BY played_at DESC, rowid DESC LIMIT ?
        )
        """,
        (max(0, limit),),
    )
    await db.commit()


async def list_recent() -> List[Track]:
    db = get_db()
    cursor = await db.execute(
        "SELECT data FROM recently_played ORDER BY played_at DESC, rowid DESC"
    )
    return [Track.model_validate_json(row[0]) for row in await cursor.fetchall()]


# ---------------------------------------------------------------------------
# Bulk
# ---------------------------------------------------------------------------

async def export_json() -> str:
    return export_library(await list_playlists(), await list_favorites())


async def import_json(raw_json: str) -> tuple[int, int]:
    """Merge an export into the library. Raises ``ValueError`` on bad input."""
    payload = import_library(raw_json)
    for playlist in payload.playlists:
        await save_playlist(playlist)
    added = 0
    for track in payload.favorites:
        if not await is_favorite(track.id):
            await toggle_favorite(track)
            added += 1
    logger.info("Imported %d playlists, %d favorites", len(payload.playlists), added)
    return len(payload.playlists), added


async def clear_all() -> None:
    """Drop every playlist, favorite and recent entry (the audio cache stays)."""
    db = get_db()
    await db.execute("DELETE FROM playlists")
    await db.execute("DELETE FROM favorites")
    await db.execute("DELETE FROM recently_played")
    await db.commit()
