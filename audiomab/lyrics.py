"""Lyrics lookup against an LRCLIB-compatible search API.

Only the first search hit is used.  Its synced (LRC) lyrics win; plain
lyrics are the fallback, timed evenly over the track duration.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from audiocore.lyrics import Lyrics, parse_lrc, spread_plain_lyrics

logger = logging.getLogger(__name__)

LRCLIB_URL = "https://lrclib.net"
LYRICS_SOURCE = "lrclib"


class LyricsNotFound(Exception):
    """The lyrics service has nothing for this track."""


class LyricsFetchError(Exception):
    """The lyrics service could not be reached or answered garbage."""


class LyricsClient:
    def __init__(
        self,
        base_url: str = LRCLIB_URL,
        *,
        timeout: float = 8.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def _search(self, query: str) -> Any:
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                transport=self.transport,
                timeout=self.timeout,
                headers={"User-Agent": "audiomab/0.1.0", "Accept": "application/json"},
            ) as client:
                resp = await client.get("/api/search", params={"q": query})
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise LyricsFetchError(f"lyrics search failed: {exc}") from exc

        if resp.status_code != 200:
            raise LyricsFetchError(f"lyrics search failed: HTTP {resp.status_code}")
        try:
            return resp.json()
        except ValueError as exc:
            raise LyricsFetchError("lyrics search returned non-JSON") from exc

    async def fetch(self, title: str, artist: str = "", duration: float = 0) -> Lyrics:
        """Look up lyrics by ``"{title} {artist}"``.

        Raises ``LyricsNotFound`` when no hit carries lyrics and
        ``LyricsFetchError`` when the service fails.
        """
        query = f"{title} {artist}".strip()
        data = await self._search(query)
        if not isinstance(data, list):
            raise LyricsFetchError("lyrics search returned an unexpected shape")

        hit = data[0] if data and isinstance(data[0], dict) else {}
        synced = hit.get("syncedLyrics") or ""
        plain = hit.get("plainLyrics") or ""

        lines = parse_lrc(synced) if synced else []
        if lines:
            logger.info("Synced lyrics for %r: %d lines", query, len(lines))
            return Lyrics(lines=lines, synced=True, source=LYRICS_SOURCE)

        lines = spread_plain_lyrics(plain, duration)
        if lines:
            logger.info("Plain lyrics for %r: %d lines", query, len(lines))
            return Lyrics(lines=lines, synced=False, source=LYRICS_SOURCE)

        raise LyricsNotFound(query)
