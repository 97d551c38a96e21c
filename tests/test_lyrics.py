"""Tests for lyrics parsing (audiocore/lyrics.py), lookup and the /lyrics route."""

from __future__ import annotations

import httpx
import pytest
from fastapi.testclient import TestClient

from audiocore.lyrics import LyricLine, current_line_index, parse_lrc, spread_plain_lyrics
from audiomab.deps import get_lyrics_client
from audiomab.lyrics import LyricsClient, LyricsFetchError, LyricsNotFound
from audiomab.main import app

LRC = """[ti:Song]
[00:12.50] First line
[00:05.00]Intro
[01:02.123]Late line
[00:20.00]
[00:30.00][01:30.00]Chorus
"""


def _client_for(handler) -> LyricsClient:
    return LyricsClient("https://lyrics.example", transport=httpx.MockTransport(handler))


def _answer(body, status: int = 200):
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["q"] = request.url.params.get("q")
        return httpx.Response(status, json=body)

    return handler, seen


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

class TestParseLrc:
    def test_lines_sorted_by_time(self):
        lines = parse_lrc(LRC)
        assert [line.text for line in lines] == ["Intro", "First line", "Chorus", "Late line", "Chorus"]

    def test_centiseconds_and_milliseconds(self):
        times = [line.time for line in parse_lrc(LRC)]
        assert times[1] == pytest.approx(12.5)
        assert times[3] == pytest.approx(62.123)

    def test_empty_and_untagged_lines_are_dropped(self):
        assert parse_lrc("[ar:Band]\nno tag here\n[00:01.00]   \n") == []

    def test_repeated_tags_yield_one_entry_each(self):
        chorus = [line.time for line in parse_lrc(LRC) if line.text == "Chorus"]
        assert chorus == [30.0, 90.0]


class TestSpreadPlainLyrics:
    def test_even_spacing_over_duration(self):
        lines = spread_plain_lyrics("one\n\ntwo\nthree\nfour\n", duration=200)
        assert [line.text for line in lines] == ["one", "two", "three", "four"]
        assert [line.time for line in lines] == [0, 50, 100, 150]

    def test_unknown_duration_uses_default(self):
        lines = spread_plain_lyrics("a\nb\nc", duration=0)
        assert [line.time for line in lines] == [0, 60, 120]

    def test_blank_text(self):
        assert spread_plain_lyrics("  \n\n") == []


class TestCurrentLineIndex:
    LINES = [LyricLine(time=5, text="a"), LyricLine(time=10, text="b"), LyricLine(time=20, text="c")]

    def test_before_first_line(self):
        assert current_line_index(self.LINES, 1) == 0

    def test_between_lines(self):
        assert current_line_index(self.LINES, 12) == 1

    def test_after_last_line(self):
        assert current_line_index(self.LINES, 99) == 2

    def test_no_lines(self):
        assert current_line_index([], 3) == -1


# ---------------------------------------------------------------------------
# Lookup
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_synced_lyrics_preferred():
    handler, seen = _answer([{"syncedLyrics": "[00:01.00]Hi", "plainLyrics": "Hi"}])
    lyrics = await _client_for(handler).fetch("Song", "Band")
    assert seen == {"path": "/api/search", "q": "Song Band"}
    assert lyrics.synced is True
    assert lyrics.source == "lrclib"
    assert [(line.time, line.text) for line in lyrics.lines] == [(1.0, "Hi")]


@pytest.mark.asyncio
async def test_plain_lyrics_fallback_uses_duration():
    handler, _ = _answer([{"syncedLyrics": None, "plainLyrics": "a\nb"}])
    lyrics = await _client_for(handler).fetch("Song", "Band", duration=100)
    assert lyrics.synced is False
    assert [line.time for line in lyrics.lines] == [0, 50]


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [[], [{"syncedLyrics": "", "plainLyrics": ""}], [{"instrumental": True}]])
async def test_nothing_usable_is_not_found(body):
    handler, _ = _answer(body)
    with pytest.raises(LyricsNotFound):
        await _client_for(handler).fetch("Song")


@pytest.mark.asyncio
async def test_http_error_status_is_fetch_error():
    handler, _ = _answer({"message": "down"}, status=503)
    with pytest.raises(LyricsFetchError):
        await _client_for(handler).fetch("Song")


@pytest.mark.asyncio
async def test_wrong_shape_is_fetch_error():
    handler, _ = _answer({"results": []})
    with pytest.raises(LyricsFetchError):
        await _client_for(handler).fetch("Song")


@pytest.mark.asyncio
async def test_connect_error_is_fetch_error():
    def boom(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(LyricsFetchError):
        await _client_for(boom).fetch("Song")


# ---------------------------------------------------------------------------
# /lyrics
# ---------------------------------------------------------------------------

@pytest.fixture
def route_client(monkeypatch, tmp_path):
    monkeypatch.setenv("DB_PATH", str(tmp_path / "test.db"))
    from audiomab.config import get_settings
    get_settings.cache_clear()

    def use(handler) -> TestClient:
        app.dependency_overrides[get_lyrics_client] = lambda: _client_for(handler)
        return TestClient(app)

    yield use
    app.dependency_overrides.clear()


def test_route_returns_lines(route_client):
    handler, seen = _answer([{"syncedLyrics": "[00:02.00]Hello\n[00:04.00]World"}])
    resp = route_client(handler).get("/lyrics", params={"title": " Song ", "artist": "Band"})
    assert resp.status_code == 200
    assert resp.json() == {
        "lines": [{"time": 2.0, "text": "Hello"}, {"time": 4.0, "text": "World"}],
        "synced": True,
        "source": "lrclib",
    }
    assert seen["q"] == "Song Band"


def test_route_not_found_is_404(route_client):
    handler, _ = _answer([])
    resp = route_client(handler).get("/lyrics", params={"title": "Song"})
    assert resp.status_code == 404
    assert resp.json() == {"error": "No lyrics found"}


def test_route_service_failure_is_502(route_client):
    handler, _ = _answer({}, status=500)
    resp = route_client(handler).get("/lyrics", params={"title": "Song"})
    assert resp.status_code == 502
    assert resp.json() == {"error": "Could not load lyrics"}


def test_route_blank_title_is_400(route_client):
    handler, seen = _answer([])
    resp = route_client(handler).get("/lyrics", params={"title": "  "})
    assert resp.status_code == 400
    assert seen == {}
