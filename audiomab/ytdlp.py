"""Primary local resolver backed by the yt-dlp library.

Only enabled in a trusted/local deployment: it scrapes the upstream site
directly from this host.  yt-dlp is synchronous, so every extraction runs
in a worker thread.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional

import httpx
from yt_dlp import YoutubeDL
from yt_dlp.utils import DownloadError

from audiocore.classify import playlist_url, watch_url
from audiocore.models import AudioStream, PlaylistInfo, SearchResult, VideoInfo
from audiocore.streams import (
    NoAudioStream,
    as_bitrate,
    as_duration,
    pick_thumbnail,
    select_best_audio,
)
from audiomab.backend import Backend, BackendUnavailable, MalformedResponse, NotFound

logger = logging.getLogger(__name__)

_NOT_FOUND_MARKERS = ("video unavailable", "does not exist", "not available", "private video")


def _author(info: dict) -> str:
    return info.get("uploader") or info.get("channel") or "Unknown"


def _is_audio_only(fmt: dict) -> bool:
    acodec = fmt.get("acodec")
    vcodec = fmt.get("vcodec")
    return bool(acodec) and acodec != "none" and (not vcodec or vcodec == "none")


class YtDlpBackend(Backend):
    name = "yt-dlp"

    def __init__(
        self,
        *,
        ydl_factory: Callable[[dict], Any] = YoutubeDL,
        cookiefile: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._ydl_factory = ydl_factory
        self._cookiefile = cookiefile
        self.transport = transport

    def _opts(self, timeout: float, **extra) -> dict:
        opts: dict[str, Any] = {
            "quiet": True,
            "no_warnings": True,
            "skip_download": True,
            "socket_timeout": timeout,
        }
        if self._cookiefile:
            opts["cookiefile"] = self._cookiefile
        opts.update(extra)
        return opts

    def _extract_sync(self, target: str, opts: dict) -> dict:
        with self._ydl_factory(opts) as ydl:
            return ydl.extract_info(target, download=False)

    async def _extract(self, target: str, opts: dict) -> dict:
        try:
            info = await asyncio.to_thread(self._extract_sync, target, opts)
        except DownloadError as exc:
            message = str(exc)
            if any(marker in message.lower() for marker in _NOT_FOUND_MARKERS):
                raise NotFound(self.name, message) from exc
            raise BackendUnavailable(self.name, message) from exc
        if not isinstance(info, dict):
            raise MalformedResponse(self.name, "extractor returned no info")
        return info

    def _entry(self, entry: dict) -> Optional[SearchResult]:
        video_id = entry.get("id")
        if not video_id:
            return None
        thumbnail = entry.get("thumbnail") or pick_thumbnail(video_id, entry.get("thumbnails"))
        return SearchResult(
            id=video_id,
            title=entry.get("title") or "",
            author=_author(entry),
            thumbnail=thumbnail,
            duration=as_duration(entry.get("duration")),
        )

    async def fetch_video(self, video_id: str, *, timeout: float) -> VideoInfo:
        info = await self._extract(watch_url(video_id), self._opts(timeout, noplaylist=True))

        candidates = [
            AudioStream(
                url=f.get("url") or "",
                bitrate=as_bitrate(f.get("abr") or f.get("tbr")),
                mime_type=f.get("ext") or "",
                audio_only=_is_audio_only(f),
            )
            for f in info.get("formats") or []
            if isinstance(f, dict)
        ]
        try:
            best = select_best_audio(candidates)
        except NoAudioStream as exc:
            raise MalformedResponse(self.name, str(exc)) from exc

        vid = info.get("id") or video_id
        return VideoInfo(
            videoId=vid,
            title=info.get("title") or "",
            author=_author(info),
            thumbnail=info.get("thumbnail") or "",
            duration=as_duration(info.get("duration")),
            audioUrl=best.url,
        )

    async def fetch_playlist(self, playlist_id: str, *, timeout: float) -> PlaylistInfo:
        info = await self._extract(
            playlist_url(playlist_id),
            self._opts(timeout, extract_flat="in_playlist"),
        )
        entries = [
            entry
            for entry in (self._entry(e) for e in info.get("entries") or [] if isinstance(e, dict))
            if entry is not None
        ]
        title = info.get("title") or f"Playlist ({len(entries)} videos)"
        author = info.get("uploader") or info.get("channel") or (entries[0].author if entries else "Unknown")
        return PlaylistInfo(
            playlistId=playlist_id,
            title=title,
            author=author,
            thumbnail=pick_thumbnail(entries[0].id, info.get("thumbnails")) if entries else "",
            tracks=entries,
        )

    async def search(self, query: str, limit: int, *, timeout: float) -> list[SearchResult]:
        info = await self._extract(
            f"ytsearch{limit}:{query}",
            self._opts(timeout, extract_flat=True),
        )
        results = [
            entry
            for entry in (self._entry(e) for e in info.get("entries") or [] if isinstance(e, dict))
            if entry is not None
        ]
        return results[:limit]
