"""Invidious mirror adapter (mirror pool A) — one instance per adapter.

Endpoints used:
- GET /api/v1/videos/{id}     → title, author, lengthSeconds, adaptiveFormats
- GET /api/v1/playlists/{id}  → title, author, playlistThumbnail, videos
- GET /api/v1/search?q=…      → list of mixed items, filtered to ``video``
"""

from __future__ import annotations

from audiocore.models import AudioStream, PlaylistInfo, SearchResult, VideoInfo
from audiocore.streams import (
    NoAudioStream,
    as_bitrate,
    as_duration,
    pick_thumbnail,
    select_best_audio,
)
from audiomab.backend import HttpBackend, MalformedResponse


class InvidiousBackend(HttpBackend):
    kind = "invidious"

    def _thumbnail(self, video_id: str, thumbs) -> str:
        return pick_thumbnail(video_id, thumbs, base_url=self.base_url)

    def _entry(self, item: dict) -> SearchResult | None:
        video_id = item.get("videoId")
        if not video_id:
            return None
        return SearchResult(
            id=video_id,
            title=item.get("title") or "",
            author=item.get("author") or "",
            thumbnail=pick_thumbnail(
                video_id,
                item.get("videoThumbnails"),
                prefer=("medium", "high"),
                base_url=self.base_url,
            ),
            duration=as_duration(item.get("lengthSeconds")),
        )

    async def fetch_video(self, video_id: str, *, timeout: float) -> VideoInfo:
        data = self._expect_dict(
            await self._get_json(f"/api/v1/videos/{video_id}", timeout=timeout)
        )

        candidates = [
            AudioStream(
                url=f.get("url") or "",
                bitrate=as_bitrate(f.get("bitrate")),
                mime_type=f.get("type") or "",
                audio_only=(f.get("type") or "").startswith("audio/"),
            )
            for f in data.get("adaptiveFormats") or []
            if isinstance(f, dict)
        ]
        try:
            best = select_best_audio(candidates)
        except NoAudioStream as exc:
            raise MalformedResponse(self.name, str(exc)) from exc

        vid = data.get("videoId") or video_id
        return VideoInfo(
            videoId=vid,
            title=data.get("title") or "",
            author=data.get("author") or "",
            thumbnail=self._thumbnail(vid, data.get("videoThumbnails")),
            duration=as_duration(data.get("lengthSeconds")),
            audioUrl=best.url,
        )

    async def fetch_playlist(self, playlist_id: str, *, timeout: float) -> PlaylistInfo:
        data = self._expect_dict(
            await self._get_json(f"/api/v1/playlists/{playlist_id}", timeout=timeout)
        )
        entries = [
            entry
            for entry in (self._entry(v) for v in data.get("videos") or [] if isinstance(v, dict))
            if entry is not None
        ]
        thumbnail = data.get("playlistThumbnail") or ""
        if thumbnail.startswith("//"):
            thumbnail = "https:" + thumbnail
        elif thumbnail.startswith("/"):
            thumbnail = self.base_url + thumbnail
        return PlaylistInfo(
            playlistId=data.get("playlistId") or playlist_id,
            title=data.get("title") or "",
            author=data.get("author") or "",
            thumbnail=thumbnail,
            tracks=entries,
        )

    async def search(self, query: str, limit: int, *, timeout: float) -> list[SearchResult]:
        items = self._expect_list(
            await self._get_json(
                "/api/v1/search",
                timeout=timeout,
                params={"q": query, "type": "video"},
            )
        )
        results: list[SearchResult] = []
        for item in items:
            if not isinstance(item, dict) or item.get("type", "video") != "video":
                continue
            entry = self._entry(item)
            if entry is not None:
                results.append(entry)
            if len(results) >= limit:
                break
        return results
