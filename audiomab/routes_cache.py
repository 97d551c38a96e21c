"""Offline cache routes — download, serve and evict cached audio."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from audiocore.models import Track
from audiomab.backend import InvalidInput
from audiomab.deps import get_offline_cache
from audiomab.offline_cache import OfflineCacheManager

router = APIRouter(prefix="/cache", tags=["cache"])


class CacheRequest(BaseModel):
    title: str = ""
    artist: str = ""
    thumbnail: str = ""
    duration: int = 0


def _video_id(raw: str) -> str:
    video_id = raw.strip()
    if not video_id:
        raise InvalidInput("Video ID is required")
    return video_id


@router.get("")
async def list_cached(cache: OfflineCacheManager = Depends(get_offline_cache)):
    return JSONResponse({"videoIds": await cache.cached_ids()})


@router.post("/{video_id}")
async def download(
    video_id: str,
    body: CacheRequest | None = None,
    cache: OfflineCacheManager = Depends(get_offline_cache),
):
    """Fetch the full audio payload through the relay and keep it for offline use."""
    video_id = _video_id(video_id)
    meta = body or CacheRequest()
    track = Track(
        id=video_id,
        videoId=video_id,
        title=meta.title,
        artist=meta.artist,
        thumbnail=meta.thumbnail,
        duration=max(0, meta.duration),
    )
    entry = await cache.download(track)
    return JSONResponse({"videoId": entry.key, "cached": True, "size": entry.size})


@router.get("/{video_id}/status")
async def status(video_id: str, cache: OfflineCacheManager = Depends(get_offline_cache)):
    return JSONResponse({"videoId": video_id, "cached": await cache.is_cached(video_id)})


@router.get("/{video_id}")
async def get_blob(video_id: str, cache: OfflineCacheManager = Depends(get_offline_cache)):
    entry = await cache.get_cached_blob(video_id)
    if entry is None:
        raise HTTPException(status_code=404, detail="Not cached")
    return Response(
        content=entry.blob,
        media_type=entry.content_type,
        headers={"Accept-Ranges": "bytes", "X-Source": "offline-cache"},
    )


@router.delete("/{video_id}")
async def remove(video_id: str, cache: OfflineCacheManager = Depends(get_offline_cache)):
    removed = await cache.remove(video_id)
    if not removed:
        raise HTTPException(status_code=404, detail="Not cached")
    return JSONResponse({"videoId": video_id, "removed": True})
