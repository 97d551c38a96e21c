"""Pydantic models shared across the application."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator


THUMBNAIL_TEMPLATE = "https://i.ytimg.com/vi/{video_id}/mqdefault.jpg"


def default_thumbnail(video_id: str) -> str:
    """Deterministic thumbnail for a video that came back without one."""
    return THUMBNAIL_TEMPLATE.format(video_id=video_id)


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class MediaKind(str, Enum):
    VIDEO = "video"
    PLAYLIST = "playlist"


class MediaReference(BaseModel):
    """Typed result of classifying a user-supplied URL."""

    kind: MediaKind
    id: str

    model_config = {"frozen": True}


class Track(BaseModel):
    """A playable track. ``id`` is the local identity (cache/favorite/queue key)."""

    id: str
    videoId: str
    title: str = ""
    artist: str = ""
    thumbnail: str = ""
    duration: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _fill_thumbnail(self) -> "Track":
        if not self.thumbnail:
            self.thumbnail = default_thumbnail(self.videoId)
        return self


class SearchResult(BaseModel):
    """One search hit or playlist entry as returned by a backend adapter."""

    id: str
    title: str = ""
    author: str = ""
    thumbnail: str = ""
    duration: int = Field(default=0, ge=0)

    def to_track(self) -> Track:
        return Track(
            id=self.id,
            videoId=self.id,
            title=self.title,
            artist=self.author,
            thumbnail=self.thumbnail,
            duration=self.duration,
        )


class VideoInfo(BaseModel):
    """Normalized ``fetch_video`` result: metadata plus the best audio URL."""

    videoId: str
    title: str = ""
    author: str = ""
    thumbnail: str = ""
    duration: int = Field(default=0, ge=0)
    audioUrl: str

    def to_track(self) -> Track:
        return Track(
            id=self.videoId,
            videoId=self.videoId,
            title=self.title,
            artist=self.author,
            thumbnail=self.thumbnail,
            duration=self.duration,
        )


class Playlist(BaseModel):
    """A playlist as stored in the library. Replaced whole on every update."""

    id: str
    title: str = ""
    author: str = ""
    thumbnail: str = ""
    tracks: List[Track] = Field(default_factory=list)
    updatedAt: str = Field(default_factory=now_iso)

    @classmethod
    def wrap_track(cls, track: Track) -> "Playlist":
        """A single video import is presented as a one-track playlist."""
        return cls(
            id=track.id,
            title=track.title,
            author=track.artist,
            thumbnail=track.thumbnail,
            tracks=[track],
        )


class PlaylistInfo(BaseModel):
    """Normalized ``fetch_playlist`` result."""

    playlistId: str
    title: str = ""
    author: str = ""
    thumbnail: str = ""
    tracks: List[SearchResult] = Field(default_factory=list)

    def to_playlist(self) -> Playlist:
        tracks = [entry.to_track() for entry in self.tracks]
        thumbnail = self.thumbnail or (tracks[0].thumbnail if tracks else "")
        return Playlist(
            id=self.playlistId,
            title=self.title,
            author=self.author,
            thumbnail=thumbnail,
            tracks=tracks,
        )


class ResolvedAudio(BaseModel):
    """Ephemeral playable URL. Upstream URLs are signed and expire: never persist."""

    audioUrl: str
    source: str
    track: Track
    expiresHint: Optional[str] = None


@dataclass
class AudioStream:
    """A candidate audio stream reported by a backend."""

    url: str
    bitrate: int = 0
    mime_type: str = ""
    audio_only: bool = True


@dataclass
class CachedAudio:
    """Offline cache entry keyed by video id."""

    key: str
    blob: bytes
    content_type: str = "audio/webm"
    title: str = ""
    artist: str = ""

    @property
    def size(self) -> int:
        return len(self.blob)


class LibraryExport(BaseModel):
    """JSON export of the local library — playlists and favorites only."""

    playlists: List[Playlist] = Field(default_factory=list)
    favorites: List[Track] = Field(default_factory=list)
    exported_at: str = ""

    model_config = {
        "json_schema_extra": {
            "description": "Library export — resolved audio URLs are NEVER included."
        }
    }
