"""Audio stream selection and field coercion shared by every backend adapter."""

from __future__ import annotations

from typing import Any, Iterable, Optional, Sequence

from audiocore.models import AudioStream, default_thumbnail


class NoAudioStream(ValueError):
    """Raised when a backend response holds no playable audio-only stream."""


def as_bitrate(value: Any) -> int:
    """Backends report bitrate as int, float or numeric string."""
    if value is None or isinstance(value, bool):
        return 0
    try:
        return max(0, int(float(value)))
    except (TypeError, ValueError):
        return 0


def as_duration(value: Any) -> int:
    """Coerce a backend duration into non-negative whole seconds."""
    if value is None or isinstance(value, bool):
        return 0
    try:
        return max(0, int(float(value)))
    except (TypeError, ValueError):
        return 0


def select_best_audio(candidates: Iterable[AudioStream]) -> AudioStream:
    """Pick the audio-only stream with the highest bitrate.

    Ties go to the first candidate encountered, so the result is stable for
    a given input order. Raises ``NoAudioStream`` if nothing is eligible.
    """
    best: Optional[AudioStream] = None
    for stream in candidates:
        if not stream.audio_only or not stream.url:
            continue
        if best is None or stream.bitrate > best.bitrate:
            best = stream
    if best is None:
        raise NoAudioStream("no playable audio-only stream")
    return best


def pick_thumbnail(
    video_id: str,
    thumbnails: Optional[Sequence[dict]] = None,
    *,
    prefer: Sequence[str] = ("maxres", "maxresdefault", "high", "medium"),
    base_url: str = "",
) -> str:
    """Choose a thumbnail URL from a backend's thumbnail list.

    Preference follows *prefer* by ``quality``; otherwise the first entry;
    otherwise the deterministic default for *video_id*. Relative URLs are
    joined onto *base_url*.
    """
    urls: dict[str, str] = {}
    first = ""
    for thumb in thumbnails or []:
        if not isinstance(thumb, dict):
            continue
        url = thumb.get("url") or ""
        if not url:
            continue
        if not first:
            first = url
        quality = thumb.get("quality")
        if quality and quality not in urls:
            urls[quality] = url

    chosen = next((urls[q] for q in prefer if q in urls), first)
    if not chosen:
        return default_thumbnail(video_id)
    if chosen.startswith("//"):
        return "https:" + chosen
    if chosen.startswith("/") and base_url:
        return base_url.rstrip("/") + chosen
    return chosen
