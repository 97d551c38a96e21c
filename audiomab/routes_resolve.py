"""Resolution API — audio URLs, raw audio relay, search and imports.

Domain failures (``InvalidInput``, ``AllBackendsUnavailable``, catalog
errors) propagate to the app-level exception handlers in ``main``.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel
from starlette.background import BackgroundTask

from audiocore.classify import is_catalog_url
from audiomab.backend import InvalidInput
from audiomab.catalog import import_catalog_playlist
from audiomab.config import Settings
from audiomab.deps import get_config, get_engine
from audiomab.engine import ResolutionEngine

router = APIRouter(prefix="/resolve", tags=["resolve"])


class ImportRequest(BaseModel):
    url: str = ""


# ---------------------------------------------------------------------------
# GET /resolve/audio/{video_id}: fresh playable URL + metadata
# ---------------------------------------------------------------------------

@router.get("/audio/{video_id}")
async def resolve_audio(video_id: str, engine: ResolutionEngine = Depends(get_engine)):
    resolved = await engine.resolve_audio(video_id)
    track = resolved.track
    return JSONResponse(
        {
            "audioUrl": resolved.audioUrl,
            "title": track.title,
            "artist": track.artist,
            "thumbnail": track.thumbnail,
            "duration": track.duration,
            "source": resolved.source,
        }
    )


# ---------------------------------------------------------------------------
# GET /resolve/stream/{video_id}: relay raw audio bytes
# ---------------------------------------------------------------------------

@router.get("/stream/{video_id}")
async def stream_audio(video_id: str, engine: ResolutionEngine = Depends(get_engine)):
    """Relay the audio through this service so the client never hits upstream."""
    resolved = await engine.open_stream(video_id)
    handle = resolved.value

    headers = {"Accept-Ranges": "bytes", "X-Source": resolved.source}
    if handle.content_length is not None:
        headers["Content-Length"] = str(handle.content_length)

    return StreamingResponse(
        handle.aiter_bytes(),
        media_type=handle.content_type,
        headers=headers,
        background=BackgroundTask(handle.aclose),
    )


# ---------------------------------------------------------------------------
# GET /resolve/search?q=&limit=
# ---------------------------------------------------------------------------

@router.get("/search")
async def search(
    q: str = "",
    limit: Optional[int] = None,
    engine: ResolutionEngine = Depends(get_engine),
    settings: Settings = Depends(get_config),
):
    resolved = await engine.search(q, limit or settings.search_limit)
    return JSONResponse(
        {
            "results": [hit.to_track().model_dump() for hit in resolved.value],
            "source": resolved.source,
        }
    )


# ---------------------------------------------------------------------------
# POST /resolve/import: video or playlist URL → Playlist
# ---------------------------------------------------------------------------

@router.post("/import")
async def import_url(body: ImportRequest, engine: ResolutionEngine = Depends(get_engine)):
    resolved = await engine.import_url(body.url)
    return JSONResponse({"data": resolved.value.model_dump(), "source": resolved.source})


# ---------------------------------------------------------------------------
# POST /resolve/catalog-import: Apple Music playlist page → Playlist
# ---------------------------------------------------------------------------

@router.post("/catalog-import")
async def catalog_import(
    body: ImportRequest,
    engine: ResolutionEngine = Depends(get_engine),
    settings: Settings = Depends(get_config),
):
    url = body.url.strip()
    if not url:
        raise InvalidInput("URL is required")
    if not is_catalog_url(url):
        raise InvalidInput("Invalid Apple Music URL")

    result = await import_catalog_playlist(
        engine,
        url,
        max_songs=settings.catalog_max_songs,
        timeout=settings.playlist_timeout,
    )
    return JSONResponse(
        {
            "data": result.playlist.model_dump(),
            "originalSongs": result.original_count,
            "matchedSongs": result.matched_count,
            "source": "catalog",
        }
    )
