"""Export/Import logic — library as JSON (NEVER includes resolved audio URLs)."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import List

from pydantic import ValidationError

from audiocore.models import LibraryExport, Playlist, Track

# Signed upstream URLs expire and must never be persisted.
_EPHEMERAL_KEYS = ("audioUrl", "expiresHint")


def export_library(playlists: List[Playlist], favorites: List[Track]) -> str:
    """Serialize playlists and favorites to a JSON string."""
    payload = LibraryExport(
        playlists=playlists,
        favorites=favorites,
        exported_at=datetime.now(timezone.utc).isoformat(),
    )
    return payload.model_dump_json(indent=2)


def _strip_ephemeral(track: dict) -> dict:
    for key in _EPHEMERAL_KEYS:
        track.pop(key, None)
    return track


def import_library(raw_json: str) -> LibraryExport:
    """Parse JSON back into a LibraryExport.

    Raises ``ValueError`` if the JSON is invalid or does not match the shape.
    """
    try:
        data = json.loads(raw_json)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON: {exc}") from exc

    if not isinstance(data, dict):
        raise ValueError("Invalid library export: expected a JSON object")

    for playlist in data.get("playlists") or []:
        if isinstance(playlist, dict):
            for track in playlist.get("tracks") or []:
                if isinstance(track, dict):
                    _strip_ephemeral(track)
    for track in data.get("favorites") or []:
        if isinstance(track, dict):
            _strip_ephemeral(track)

    try:
        return LibraryExport(**data)
    except ValidationError as exc:
        raise ValueError(f"Invalid library export: {exc}") from exc
