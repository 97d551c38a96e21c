"""Library routes — playlists, favorites, recently played, export/import."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, Response

from audiocore.models import Playlist, Track
from audiomab import library
from audiomab.config import Settings
from audiomab.deps import get_config

router = APIRouter(prefix="/library", tags=["library"])


def _dump(items) -> list[dict]:
    return [item.model_dump() for item in items]


# ---------------------------------------------------------------------------
# Playlists
# ---------------------------------------------------------------------------

@router.get("/playlists")
async def list_playlists():
    return JSONResponse({"playlists": _dump(await library.list_playlists())})


@router.get("/playlists/{playlist_id}")
async def get_playlist(playlist_id: str):
    playlist = await library.get_playlist(playlist_id)
    if playlist is None:
        raise HTTPException(status_code=404, detail="Playlist not found")
    return JSONResponse(playlist.model_dump())


@router.put("/playlists/{playlist_id}")
async def save_playlist(playlist_id: str, playlist: Playlist):
    """Replace the stored playlist whole; the path id wins over the body id."""
    stored = await library.save_playlist(playlist.model_copy(update={"id": playlist_id}))
    return JSONResponse(stored.model_dump())


@router.delete("/playlists/{playlist_id}")
async def delete_playlist(playlist_id: str):
    if not await library.delete_playlist(playlist_id):
        raise HTTPException(status_code=404, detail="Playlist not found")
    return JSONResponse({"status": "deleted", "id": playlist_id})


@router.post("/playlists/{playlist_id}/tracks")
async def add_track(playlist_id: str, track: Track):
    playlist = await library.add_track_to_playlist(playlist_id, track)
    if playlist is None:
        raise HTTPException(status_code=404, detail="Playlist not found")
    return JSONResponse(playlist.model_dump())


@router.delete("/playlists/{playlist_id}/tracks/{track_id}")
async def remove_track(playlist_id: str, track_id: str):
    playlist = await library.remove_track_from_playlist(playlist_id, track_id)
    if playlist is None:
        raise HTTPException(status_code=404, detail="Playlist not found")
    return JSONResponse(playlist.model_dump())


# ---------------------------------------------------------------------------
# Favorites & recently played
# ---------------------------------------------------------------------------

@router.get("/favorites")
async def list_favorites():
    return JSONResponse({"favorites": _dump(await library.list_favorites())})


@router.post("/favorites/toggle")
async def toggle_favorite(track: Track):
    favorite = await library.toggle_favorite(track)
    return JSONResponse({"id": track.id, "favorite": favorite})


@router.get("/recent")
async def list_recent():
    return JSONResponse({"recent": _dump(await library.list_recent())})


@router.post("/recent")
async def add_recent(track: Track, settings: Settings = Depends(get_config)):
    await library.add_recent(track, settings.recent_limit)
    return JSONResponse({"status": "recorded", "id": track.id})


# ---------------------------------------------------------------------------
# Export / import / clear
# ---------------------------------------------------------------------------

@router.get("/export")
async def export_library():
    """Download playlists and favorites as JSON (no audio URLs)."""
    return Response(
        content=await library.export_json(),
        media_type="application/json",
        headers={"Content-Disposition": 'attachment; filename="audiomab-library.json"'},
    )


@router.post("/import")
async def import_library(request: Request):
    body = await request.body()
    try:
        playlists, favorites = await library.import_json(body.decode("utf-8"))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return JSONResponse({"status": "imported", "playlists": playlists, "favorites": favorites})


@router.delete("")
async def clear_library():
    await library.clear_all()
    return JSONResponse({"status": "cleared"})
