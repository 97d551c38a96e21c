"""URL classifier — pure string logic, no network.

Turns whatever the user pasted into a ``MediaReference`` (video or playlist),
or ``None`` when the input is not something we know how to resolve.
"""

from __future__ import annotations

from typing import Optional
from urllib.parse import parse_qs, urlsplit

from audiocore.models import MediaKind, MediaReference

SHORT_LINK_HOSTS = frozenset({"youtu.be", "www.youtu.be"})
SHORTS_PREFIX = "/shorts/"
CATALOG_HOSTS = frozenset({"music.apple.com", "www.music.apple.com"})


def _first_param(query: dict[str, list[str]], name: str) -> Optional[str]:
    values = query.get(name) or []
    for value in values:
        value = value.strip()
        if value:
            return value
    return None


def classify(raw: str) -> Optional[MediaReference]:
    """Classify *raw* into a video or playlist reference.

    Rules, in priority order:

    1. ``list`` query parameter → playlist
    2. short-link host → video id from the first path segment
    3. ``/shorts/<id>`` path → video
    4. ``v`` query parameter → video

    Returns ``None`` for anything else, including strings that do not parse
    as an absolute URL.
    """
    if not raw or not raw.strip():
        return None
    try:
        parts = urlsplit(raw.strip())
        host = (parts.hostname or "").lower()
    except ValueError:
        return None
    if not parts.scheme or not host:
        return None

    query = parse_qs(parts.query)

    playlist_id = _first_param(query, "list")
    if playlist_id:
        return MediaReference(kind=MediaKind.PLAYLIST, id=playlist_id)

    if host in SHORT_LINK_HOSTS:
        segment = parts.path.lstrip("/").split("/", 1)[0]
        if segment:
            return MediaReference(kind=MediaKind.VIDEO, id=segment)

    if parts.path.startswith(SHORTS_PREFIX):
        remainder = parts.path[len(SHORTS_PREFIX):].strip("/")
        if remainder:
            return MediaReference(kind=MediaKind.VIDEO, id=remainder)

    video_id = _first_param(query, "v")
    if video_id:
        return MediaReference(kind=MediaKind.VIDEO, id=video_id)

    return None


def is_catalog_url(raw: str) -> bool:
    """True for a third-party catalog (Apple Music) page URL."""
    if not raw:
        return False
    try:
        parts = urlsplit(raw.strip())
        host = (parts.hostname or "").lower()
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and host in CATALOG_HOSTS


def watch_url(video_id: str) -> str:
    return f"https://www.youtube.com/watch?v={video_id}"


def playlist_url(playlist_id: str) -> str:
    return f"https://www.youtube.com/playlist?list={playlist_id}"
