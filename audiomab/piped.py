"""Piped mirror adapter (mirror pool B) — one instance per adapter.

Piped names things differently from Invidious (``uploader`` instead of
``author``, ``/watch?v=`` URLs instead of ids); everything is translated
here and never leaks past the adapter.
"""

from __future__ import annotations

from typing import Optional
from urllib.parse import parse_qs, urlsplit

from audiocore.models import AudioStream, PlaylistInfo, SearchResult, VideoInfo
from audiocore.streams import (
    NoAudioStream,
    as_bitrate,
    as_duration,
    select_best_audio,
)
from audiomab.backend import HttpBackend, MalformedResponse


def video_id_from_url(url: str) -> Optional[str]:
    """``/watch?v=abc`` (or a full watch URL) → ``abc``."""
    if not url:
        return None
    parts = urlsplit(url)
    ids = parse_qs(parts.query).get("v")
    if ids and ids[0]:
        return ids[0]
    return None


class PipedBackend(HttpBackend):
    kind = "piped"

    def _entry(self, item: dict) -> Optional[SearchResult]:
        video_id = video_id_from_url(item.get("url") or "")
        if not video_id:
            return None
        return SearchResult(
            id=video_id,
            title=item.get("title") or "",
            author=item.get("uploaderName") or item.get("uploader") or "",
            thumbnail=item.get("thumbnail") or "",
            duration=as_duration(item.get("duration")),
        )

    async def fetch_video(self, video_id: str, *, timeout: float) -> VideoInfo:
        data = self._expect_dict(await self._get_json(f"/streams/{video_id}", timeout=timeout))

        candidates = []
        for s in data.get("audioStreams") or []:
            if not isinstance(s, dict):
                continue
            mime = s.get("mimeType") or ""
            candidates.append(
                AudioStream(
                    url=s.get("url") or "",
                    bitrate=as_bitrate(s.get("bitrate")),
                    mime_type=mime,
                    audio_only=not s.get("videoOnly", False) and (not mime or mime.startswith("audio/")),
                )
            )
        try:
            best = select_best_audio(candidates)
        except NoAudioStream as exc:
            raise MalformedResponse(self.name, str(exc)) from exc

        return VideoInfo(
            videoId=video_id,
            title=data.get("title") or "",
            author=data.get("uploader") or "",
            thumbnail=data.get("thumbnailUrl") or "",
            duration=as_duration(data.get("duration")),
            audioUrl=best.url,
        )

    async def fetch_playlist(self, playlist_id: str, *, timeout: float) -> PlaylistInfo:
        data = self._expect_dict(
            await self._get_json(f"/playlists/{playlist_id}", timeout=timeout)
        )
        entries = [
            entry
            for entry in (
                self._entry(s) for s in data.get("relatedStreams") or [] if isinstance(s, dict)
            )
            if entry is not None
        ]
        return PlaylistInfo(
            playlistId=playlist_id,
            title=data.get("name") or "",
            author=data.get("uploader") or "",
            thumbnail=data.get("thumbnailUrl") or "",
            tracks=entries,
        )

    async def search(self, query: str, limit: int, *, timeout: float) -> list[SearchResult]:
        data = self._expect_dict(
            await self._get_json(
                "/search",
                timeout=timeout,
                params={"q": query, "filter": "videos"},
            )
        )
        results: list[SearchResult] = []
        for item in data.get("items") or []:
            if not isinstance(item, dict) or item.get("type", "stream") != "stream":
                continue
            entry = self._entry(item)
            if entry is not None:
                results.append(entry)
            if len(results) >= limit:
                break
        return results
