"""Lyrics route: synced or evenly timed lines for a track."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from audiomab.backend import InvalidInput
from audiomab.deps import get_lyrics_client
from audiomab.lyrics import LyricsClient

router = APIRouter(prefix="/lyrics", tags=["lyrics"])


@router.get("")
async def lyrics(
    title: str = "",
    artist: str = "",
    duration: float = Query(0, ge=0),
    client: LyricsClient = Depends(get_lyrics_client),
):
    if not title.strip():
        raise InvalidInput("Title is required")
    found = await client.fetch(title.strip(), artist.strip(), duration)
    return JSONResponse(found.model_dump())
