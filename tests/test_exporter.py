"""Tests for library export/import (audiocore/exporter.py)."""

from __future__ import annotations

import json

import pytest

from audiocore.exporter import export_library, import_library
from audiocore.models import Playlist, Track


def _track(video_id: str) -> Track:
    return Track(id=video_id, videoId=video_id, title=f"Title {video_id}", artist="A")


class TestExportLibrary:
    def test_export_is_valid_json(self):
        playlist = Playlist(id="p1", title="Mine", tracks=[_track("a"), _track("b")])
        data = json.loads(export_library([playlist], [_track("c")]))
        assert [p["id"] for p in data["playlists"]] == ["p1"]
        assert [t["id"] for t in data["playlists"][0]["tracks"]] == ["a", "b"]
        assert [t["id"] for t in data["favorites"]] == ["c"]
        assert data["exported_at"]

    def test_export_never_contains_audio_urls(self):
        result = export_library([Playlist(id="p", tracks=[_track("a")])], [_track("b")])
        assert "audioUrl" not in result
        assert "expiresHint" not in result


class TestImportLibrary:
    def test_import_roundtrip(self):
        exported = export_library([Playlist(id="p", title="T", tracks=[_track("a")])], [])
        payload = import_library(exported)
        assert payload.playlists[0].title == "T"
        assert payload.playlists[0].tracks[0].videoId == "a"

    def test_import_strips_audio_urls(self):
        raw = json.dumps(
            {
                "playlists": [
                    {
                        "id": "p",
                        "tracks": [
                            {"id": "a", "videoId": "a", "audioUrl": "https://signed", "expiresHint": "x"}
                        ],
                    }
                ],
                "favorites": [{"id": "b", "videoId": "b", "audioUrl": "https://signed"}],
            }
        )
        payload = import_library(raw)
        dumped = payload.model_dump_json()
        assert "audioUrl" not in dumped
        assert "https://signed" not in dumped

    def test_import_invalid_json_raises(self):
        with pytest.raises(ValueError, match="Invalid JSON"):
            import_library("not json")

    def test_import_wrong_shape_raises(self):
        with pytest.raises(ValueError, match="Invalid library export"):
            import_library("[1, 2, 3]")

    def test_import_bad_track_raises(self):
        raw = json.dumps({"favorites": [{"title": "no id"}]})
        with pytest.raises(ValueError, match="Invalid library export"):
            import_library(raw)
