"""Tests for the catalog (Apple Music) playlist scraper — fixture pages only."""

from __future__ import annotations

import json

import httpx
import pytest

from audiocore.models import SearchResult
from audiomab.backend import BackendUnavailable
from audiomab.catalog import (
    CatalogFetchError,
    CatalogPage,
    NoSongsExtracted,
    Song,
    extract_catalog_page,
    import_catalog_playlist,
    match_catalog_songs,
    scrape_catalog_playlist,
)
from audiomab.engine import AllBackendsUnavailable, Resolved

PAGE_URL = "https://music.apple.com/us/playlist/road-trip/pl.u-123"


def _json_ld_page(tracks: list[dict], title: str = "Road Trip - Apple Music") -> str:
    ld = {"@context": "https://schema.org", "@type": "MusicPlaylist", "name": "Road Trip", "track": tracks}
    return f"""
    <html>
      <head>
        <title>{title}</title>
        <script type="application/ld+json">{{"@type": "BreadcrumbList"}}</script>
        <script type="application/ld+json">{json.dumps(ld)}</script>
      </head>
      <body></body>
    </html>
    """


MARKUP_PAGE = """
<html>
  <head><title>Late Night - Apple Music</title></head>
  <body>
    <div class="songs-list-row">
      <div data-testid="track-title">Midnight City</div>
    </div>
    <div class="songs-list-row">
      <div data-testid="track-title"> Intro </div>
    </div>
  </body>
</html>
"""

EMPTY_PAGE = "<html><head><title>Client Side - Apple Music</title></head><body><div id='app'></div></body></html>"


class FakeSearchEngine:
    """Only ``search`` is used by the matcher."""

    def __init__(self, hits: dict[str, list[SearchResult]] | None = None, fail: set[str] | None = None):
        self.hits = hits or {}
        self.fail = fail or set()
        self.queries: list[tuple[str, int]] = []

    async def search(self, query: str, limit: int = 15):
        self.queries.append((query, limit))
        if query in self.fail:
            raise AllBackendsUnavailable(f"search({query!r})", [BackendUnavailable("x")])
        return Resolved(self.hits.get(query, []), "fake")


def _page_transport(html: str, status: int = 200) -> httpx.MockTransport:
    return httpx.MockTransport(lambda request: httpx.Response(status, text=html))


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------

class TestExtractCatalogPage:
    def test_json_ld_tracks(self):
        html = _json_ld_page(
            [
                {"@type": "MusicRecording", "name": "Song A", "byArtist": {"@type": "MusicGroup", "name": "Band A"}},
                {"@type": "MusicRecording", "name": "Song B", "byArtist": [{"name": "X"}, {"name": "Y"}]},
                {"@type": "MusicRecording", "name": "No artist"},
            ]
        )
        page = extract_catalog_page(html)
        assert page.title == "Road Trip"
        assert page.songs == [Song("Song A", "Band A"), Song("Song B", "X, Y")]

    def test_markup_fallback(self):
        page = extract_catalog_page(MARKUP_PAGE)
        assert page.title == "Late Night"
        assert page.songs == [Song("Midnight City", "Unknown Artist"), Song("Intro", "Unknown Artist")]

    def test_json_ld_preferred_over_markup(self):
        html = _json_ld_page([{"name": "From LD", "byArtist": "Artist"}]).replace(
            "<body></body>", '<body><div data-testid="track-title">From markup</div></body>'
        )
        assert [s.title for s in extract_catalog_page(html).songs] == ["From LD"]

    def test_nothing_found(self):
        page = extract_catalog_page(EMPTY_PAGE)
        assert page.songs == []
        assert page.title == "Client Side"

    def test_default_title(self):
        assert extract_catalog_page("<html></html>").title == "Apple Music Playlist"

    def test_broken_json_ld_is_ignored(self):
        html = '<script type="application/ld+json">{not json</script>' + MARKUP_PAGE
        assert len(extract_catalog_page(html).songs) == 2

    def test_song_query(self):
        assert Song("Title", "Artist").query == "Title Artist"


# ---------------------------------------------------------------------------
# Fetching
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_scrape_raises_no_songs_with_title():
    with pytest.raises(NoSongsExtracted) as exc_info:
        await scrape_catalog_playlist(PAGE_URL, transport=_page_transport(EMPTY_PAGE))
    assert exc_info.value.playlist_title == "Client Side"


@pytest.mark.asyncio
async def test_scrape_http_error_is_fetch_error():
    with pytest.raises(CatalogFetchError):
        await scrape_catalog_playlist(PAGE_URL, transport=_page_transport("gone", status=404))


@pytest.mark.asyncio
async def test_scrape_network_error_is_fetch_error():
    def boom(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(CatalogFetchError):
        await scrape_catalog_playlist(PAGE_URL, transport=httpx.MockTransport(boom))


# ---------------------------------------------------------------------------
# Matching
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_match_keeps_catalog_metadata_and_drops_misses():
    page = CatalogPage(
        title="Road Trip",
        songs=[Song("Song A", "Band A"), Song("Song B", "Band B"), Song("Song C", "Band C")],
    )
    engine = FakeSearchEngine(
        hits={
            "Song A Band A": [SearchResult(id="vidA", title="Song A (Official Video)", thumbnail="https://t/a.jpg", duration=200)],
            "Song C Band C": [SearchResult(id="vidC", title="whatever")],
        },
    )
    result = await match_catalog_songs(engine, page)

    assert result.original_count == 3
    assert result.matched_count == 2
    playlist = result.playlist
    assert playlist.id.startswith("catalog-")
    assert playlist.author == "Apple Music Import"
    assert playlist.thumbnail == "https://t/a.jpg"
    first = playlist.tracks[0]
    assert (first.id, first.videoId, first.title, first.artist, first.duration) == (
        "vidA", "vidA", "Song A", "Band A", 200,
    )
    assert all(limit == 1 for _, limit in engine.queries)


@pytest.mark.asyncio
async def test_match_skips_songs_whose_search_fails():
    page = CatalogPage(title="T", songs=[Song("Bad", "X"), Song("Good", "Y")])
    engine = FakeSearchEngine(hits={"Good Y": [SearchResult(id="g")]}, fail={"Bad X"})
    result = await match_catalog_songs(engine, page)
    assert [t.id for t in result.playlist.tracks] == ["g"]


@pytest.mark.asyncio
async def test_match_caps_searches_but_counts_all_songs():
    page = CatalogPage(title="Huge", songs=[Song(f"S{i}", "A") for i in range(60)])
    engine = FakeSearchEngine()
    result = await match_catalog_songs(engine, page, max_songs=50)
    assert len(engine.queries) == 50
    assert result.original_count == 60
    assert result.matched_count == 0
    assert result.playlist.tracks == []


@pytest.mark.asyncio
async def test_import_catalog_playlist_end_to_end():
    html = _json_ld_page([{"name": "Song A", "byArtist": {"name": "Band A"}}])
    engine = FakeSearchEngine(hits={"Song A Band A": [SearchResult(id="vidA")]})
    result = await import_catalog_playlist(engine, PAGE_URL, transport=_page_transport(html))
    assert result.playlist.title == "Road Trip"
    assert [t.videoId for t in result.playlist.tracks] == ["vidA"]
