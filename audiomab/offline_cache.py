"""Offline audio cache — fully downloaded blobs keyed by video id.

The store is a plain key-value interface so the backing storage can be
swapped (SQLite in the service, memory in tests).  Writes are
last-write-wins per key and never partial: a download is read to the end
before anything is committed, so a failed download leaves the previous
entry untouched.

No expiry or size-bounded eviction happens here; storage growth is left
to the hosting environment's quota.
"""

from __future__ import annotations

import abc
import logging
from typing import Optional

from audiocore.models import CachedAudio, Track
from audiomab.db import get_db
from audiomab.engine import ResolutionEngine

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------

class CacheStore(abc.ABC):
    """Explicit key-value interface for cached audio."""

    @abc.abstractmethod
    async def get(self, key: str) -> Optional[CachedAudio]: ...

    @abc.abstractmethod
    async def put(self, entry: CachedAudio) -> None: ...

    @abc.abstractmethod
    async def has(self, key: str) -> bool: ...

    @abc.abstractmethod
    async def delete(self, key: str) -> bool: ...

    @abc.abstractmethod
    async def keys(self) -> list[str]: ...


class MemoryCacheStore(CacheStore):
    def __init__(self):
        self._entries: dict[str, CachedAudio] = {}

    async def get(self, key: str) -> Optional[CachedAudio]:
        return self._entries.get(key)

    async def put(self, entry: CachedAudio) -> None:
        self._entries[entry.key] = entry

    async def has(self, key: str) -> bool:
        return key in self._entries

    async def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    async def keys(self) -> list[str]:
        return list(self._entries)


class SqliteCacheStore(CacheStore):
    """Backed by the ``audio_cache`` table."""

    async def get(self, key: str) -> Optional[CachedAudio]:
        db = get_db()
        cur = await db.execute(
            "SELECT video_id, blob, content_type, title, artist FROM audio_cache WHERE video_id = ?",
            (key,),
        )
        row = await cur.fetchone()
        if not row:
            return None
        return CachedAudio(
            key=row[0],
            blob=bytes(row[1]),
            content_type=row[2],
            title=row[3],
            artist=row[4],
        )

    async def put(self, entry: CachedAudio) -> None:
        db = get_db()
        await db.execute(
            """
            INSERT INTO audio_cache (video_id, content_type, title, artist, size, blob)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(video_id)
            DO UPDATE SET content_type = excluded.content_type,
                          title        = excluded.title,
                          artist       = excluded.artist,
                          size         = excluded.size,
                          blob         = excluded.blob,
                          created_at   = datetime('now')
            """,
            (entry.key, entry.content_type, entry.title, entry.artist, entry.size, entry.blob),
        )
        await db.commit()

    async def has(self, key: str) -> bool:
        db = get_db()
        cur = await db.execute("SELECT 1 FROM audio_cache WHERE video_id = ?", (key,))
        return await cur.fetchone() is not None

    async def delete(self, key: str) -> bool:
        db = get_db()
        cur = await db.execute("DELETE FROM audio_cache WHERE video_id = ?", (key,))
        await db.commit()
        return cur.rowcount > 0

    async def keys(self) -> list[str]:
        db = get_db()
        cur = await db.execute("SELECT video_id FROM audio_cache ORDER BY created_at DESC")
        return [row[0] for row in await cur.fetchall()]


# ---------------------------------------------------------------------------
# Manager
# ---------------------------------------------------------------------------

class OfflineCacheManager:
    """Download-and-keep for offline playback."""

    def __init__(self, store: CacheStore, engine: ResolutionEngine):
        self.store = store
        self.engine = engine

    async def download(self, track: Track) -> CachedAudio:
        """Fetch the full audio payload through the relay and store it.

        Overwrites a stale entry. Raises ``AllBackendsUnavailable`` if no
        backend could relay the audio; the store is untouched in that case.
        """
        resolved = await self.engine.fetch_audio(track.videoId)
        entry = CachedAudio(
            key=track.videoId,
            blob=resolved.value.blob,
            content_type=resolved.value.content_type,
            title=track.title,
            artist=track.artist,
        )
        await self.store.put(entry)
        logger.info(
            "Cached %s (%d bytes) for %r via %s",
            track.videoId,
            entry.size,
            track.title,
            resolved.source,
        )
        return entry

    async def is_cached(self, video_id: str) -> bool:
        return await self.store.has(video_id)

    async def get_cached_blob(self, video_id: str) -> Optional[CachedAudio]:
        return await self.store.get(video_id)

    async def remove(self, video_id: str) -> bool:
        return await self.store.delete(video_id)

    async def cached_ids(self) -> list[str]:
        return await self.store.keys()
