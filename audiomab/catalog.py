"""Catalog playlist import — best-effort scraping of an Apple Music page.

1. Fetch the public playlist page.
2. Extract (title, artist) pairs: JSON-LD ``MusicPlaylist`` first, then
   inline ``data-testid="track-title"`` markers.
3. Search each pair through the resolution engine (``limit=1``), capped at
   ``max_songs`` so a long playlist cannot fan out against rate-limited
   search backends.

The page markup carries no stability guarantee; anything we cannot parse
is reported as ``NoSongsExtracted`` rather than a network failure.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx
from bs4 import BeautifulSoup

from audiocore.models import Playlist, Track
from audiomab.engine import AllBackendsUnavailable, ResolutionEngine

logger = logging.getLogger(__name__)

_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
}
_TITLE_SUFFIX = " - Apple Music"
_DEFAULT_TITLE = "Apple Music Playlist"
_UNKNOWN_ARTIST = "Unknown Artist"
DEFAULT_MAX_SONGS = 50


# ---------------------------------------------------------------------------
# Results & exceptions
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Song:
    title: str
    artist: str

    @property
    def query(self) -> str:
        return f"{self.title} {self.artist}"


@dataclass
class CatalogPage:
    title: str
    songs: list[Song] = field(default_factory=list)


@dataclass
class CatalogImport:
    playlist: Playlist
    original_count: int
    matched_count: int


class CatalogFetchError(Exception):
    """The catalog page itself could not be fetched."""


class NoSongsExtracted(Exception):
    """The page was fetched but yielded no songs (likely client-rendered)."""

    def __init__(self, playlist_title: str):
        self.playlist_title = playlist_title
        super().__init__(
            "Could not extract songs from this Apple Music page. "
            "The page may require JavaScript."
        )


# ---------------------------------------------------------------------------
# Extraction (pure)
# ---------------------------------------------------------------------------

def _artist_name(value: Any) -> str:
    if isinstance(value, str):
        return value.strip() or _UNKNOWN_ARTIST
    if isinstance(value, dict):
        return (value.get("name") or "").strip() or _UNKNOWN_ARTIST
    if isinstance(value, list):
        names = [_artist_name(v) for v in value]
        names = [n for n in names if n != _UNKNOWN_ARTIST]
        return ", ".join(names) or _UNKNOWN_ARTIST
    return _UNKNOWN_ARTIST


def _json_ld_blocks(soup: BeautifulSoup) -> list[dict]:
    items: list[dict] = []
    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        text = (script.string or script.get_text() or "").strip()
        if not text:
            continue
        try:
            payload = json.loads(text)
        except json.JSONDecodeError:
            continue
        if isinstance(payload, dict):
            items.append(payload)
        elif isinstance(payload, list):
            items.extend(x for x in payload if isinstance(x, dict))
    return items


def _songs_from_json_ld(soup: BeautifulSoup) -> list[Song]:
    songs: list[Song] = []
    for block in _json_ld_blocks(soup):
        if block.get("@type") != "MusicPlaylist":
            continue
        tracks = block.get("track") or []
        if isinstance(tracks, dict):
            tracks = [tracks]
        for track in tracks:
            if not isinstance(track, dict):
                continue
            name = (track.get("name") or "").strip()
            if name and track.get("byArtist"):
                songs.append(Song(title=name, artist=_artist_name(track["byArtist"])))
    return songs


def _songs_from_markup(soup: BeautifulSoup) -> list[Song]:
    songs: list[Song] = []
    for node in soup.find_all(attrs={"data-testid": "track-title"}):
        title = node.get_text(strip=True)
        if title:
            songs.append(Song(title=title, artist=_UNKNOWN_ARTIST))
    return songs


def _page_title(soup: BeautifulSoup) -> str:
    if soup.title and soup.title.string:
        title = soup.title.string.strip()
        if title.endswith(_TITLE_SUFFIX):
            title = title[: -len(_TITLE_SUFFIX)].strip()
        if title:
            return title
    return _DEFAULT_TITLE


def extract_catalog_page(html: str) -> CatalogPage:
    """Parse a catalog page; structured data first, markup markers second."""
    soup = BeautifulSoup(html, "html.parser")
    songs = _songs_from_json_ld(soup) or _songs_from_markup(soup)
    return CatalogPage(title=_page_title(soup), songs=songs)


# ---------------------------------------------------------------------------
# Network
# ---------------------------------------------------------------------------

async def scrape_catalog_playlist(
    page_url: str,
    *,
    timeout: float = 15.0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> CatalogPage:
    """Fetch and parse a catalog playlist page.

    Raises ``CatalogFetchError`` on network/HTTP failure and
    ``NoSongsExtracted`` when the page holds no parsable songs.
    """
    try:
        async with httpx.AsyncClient(
            transport=transport,
            timeout=timeout,
            headers=_HEADERS,
            follow_redirects=True,
        ) as client:
            resp = await client.get(page_url)
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        raise CatalogFetchError(f"Failed to fetch catalog page: {exc}") from exc

    if resp.status_code != 200:
        raise CatalogFetchError(f"Failed to fetch catalog page: HTTP {resp.status_code}")

    page = extract_catalog_page(resp.text)
    if not page.songs:
        raise NoSongsExtracted(page.title)
    logger.info("Extracted %d songs from %s", len(page.songs), page_url)
    return page


async def match_catalog_songs(
    engine: ResolutionEngine,
    page: CatalogPage,
    *,
    max_songs: int = DEFAULT_MAX_SONGS,
) -> CatalogImport:
    """Find a playable track for each song; unmatched songs are dropped."""
    tracks: list[Track] = []
    for song in page.songs[:max_songs]:
        try:
            resolved = await engine.search(song.query, limit=1)
        except AllBackendsUnavailable as exc:
            logger.warning("Search failed for %r: %s", song.title, exc)
            continue
        if not resolved.value:
            logger.info("No match for %r by %r", song.title, song.artist)
            continue
        hit = resolved.value[0]
        tracks.append(
            Track(
                id=hit.id,
                videoId=hit.id,
                title=song.title,
                artist=song.artist,
                thumbnail=hit.thumbnail,
                duration=hit.duration,
            )
        )

    playlist = Playlist(
        id=f"catalog-{int(time.time() * 1000)}",
        title=page.title,
        author="Apple Music Import",
        thumbnail=tracks[0].thumbnail if tracks else "",
        tracks=tracks,
    )
    return CatalogImport(
        playlist=playlist,
        original_count=len(page.songs),
        matched_count=len(tracks),
    )


async def import_catalog_playlist(
    engine: ResolutionEngine,
    page_url: str,
    *,
    max_songs: int = DEFAULT_MAX_SONGS,
    timeout: float = 15.0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> CatalogImport:
    page = await scrape_catalog_playlist(page_url, timeout=timeout, transport=transport)
    return await match_catalog_songs(engine, page, max_songs=max_songs)
