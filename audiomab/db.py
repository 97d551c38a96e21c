"""Async SQLite database layer.

Uses aiosqlite for non-blocking access.  Tables are created on first
startup via ``init_db()``.  Every table is a simple keyed store with
whole-value replace semantics.
"""

from __future__ import annotations

import logging
from pathlib import Path

import aiosqlite

from audiomab.config import get_settings

logger = logging.getLogger(__name__)

# Module-level connection (set during lifespan startup).
_db: aiosqlite.Connection | None = None

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS playlists (
    id          TEXT    PRIMARY KEY,
    data        TEXT    NOT NULL,                   -- Playlist JSON
    updated_at  TEXT    NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS favorites (
    track_id    TEXT    PRIMARY KEY,
    data        TEXT    NOT NULL,                   -- Track JSON
    added_at    TEXT    NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS recently_played (
    track_id    TEXT    PRIMARY KEY,
    data        TEXT    NOT NULL,                   -- Track JSON
    played_at   REAL    NOT NULL
);

CREATE TABLE IF NOT EXISTS audio_cache (
    video_id      TEXT    PRIMARY KEY,
    content_type  TEXT    NOT NULL DEFAULT 'audio/webm',
    title         TEXT    NOT NULL DEFAULT '',
    artist        TEXT    NOT NULL DEFAULT '',
    size          INTEGER NOT NULL DEFAULT 0,
    blob          BLOB    NOT NULL,
    created_at    TEXT    NOT NULL DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_recent_played_at
    ON recently_played(played_at DESC);
"""


# ---------------------------------------------------------------------------
# Connection lifecycle
# ---------------------------------------------------------------------------

async def init_db(path: Path | None = None) -> aiosqlite.Connection:
    """Connect to *path* (default: ``DB_PATH``) and apply the schema.

    Calling it again replaces the previous connection.
    """
    global _db  # noqa: PLW0603
    await close_db()
    target = path or get_settings().db_abs_path

    conn = await aiosqlite.connect(str(target))
    conn.row_factory = aiosqlite.Row  # type: ignore[assignment]
    await conn.execute("PRAGMA journal_mode=WAL")
    await conn.executescript(_SCHEMA_SQL)
    await conn.commit()
    _db = conn
    logger.debug("SQLite ready at %s", target)
    return conn


async def close_db() -> None:
    global _db  # noqa: PLW0603
    conn, _db = _db, None
    if conn is not None:
        await conn.close()


def get_db() -> aiosqlite.Connection:
    """The open connection; only valid between ``init_db`` and ``close_db``."""
    if _db is None:
        raise RuntimeError("Database not initialised; init_db() must run first.")
    return _db
