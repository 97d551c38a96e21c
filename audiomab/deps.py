"""FastAPI dependencies — process-wide engine, offline cache, player and lyrics client."""

from __future__ import annotations

from fastapi import Depends

from audiomab.config import Settings, get_settings
from audiomab.engine import EngineConfig, ResolutionEngine, build_engine
from audiomab.lyrics import LyricsClient
from audiomab.offline_cache import OfflineCacheManager, SqliteCacheStore
from audiomab.player import PlaybackController, RemoteAudioOutput

# Built lazily on first request, dropped by reset_state() at shutdown.
_engine: ResolutionEngine | None = None
_controller: PlaybackController | None = None


def get_config() -> Settings:
    """FastAPI dependency for configuration."""
    return get_settings()


def get_engine() -> ResolutionEngine:
    global _engine  # noqa: PLW0603
    if _engine is None:
        _engine = build_engine(EngineConfig.from_settings(get_settings()))
    return _engine


def get_lyrics_client() -> LyricsClient:
    settings = get_settings()
    return LyricsClient(settings.lyrics_api_url, timeout=settings.lyrics_timeout)


def get_offline_cache(engine: ResolutionEngine = Depends(get_engine)) -> OfflineCacheManager:
    return OfflineCacheManager(SqliteCacheStore(), engine)


def get_controller(
    engine: ResolutionEngine = Depends(get_engine),
    cache: OfflineCacheManager = Depends(get_offline_cache),
) -> PlaybackController:
    """The single server-held playback session."""
    global _controller  # noqa: PLW0603
    if _controller is None:
        _controller = PlaybackController(RemoteAudioOutput(), engine, cache)
    return _controller


async def reset_state() -> None:
    global _engine, _controller  # noqa: PLW0603
    if _controller is not None:
        await _controller.shutdown()
    _engine = None
    _controller = None
