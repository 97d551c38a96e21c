"""Resolution engine — ordered multi-backend fallback.

No single backend is reliable: the local resolver may be disabled, mirror
instances rate-limit or vanish, and the upstream site may block scraping at
any time.  Every operation therefore walks a fixed, declared list of
backends:

  local yt-dlp (trusted mode only) → external resolver (if configured)
  → Invidious instances in order → Piped instances in order

Attempts are strictly sequential and one-shot: attempt N+1 starts only
after attempt N settled, and falling through to the next backend *is* the
retry mechanism.  The first success wins and is returned together with the
name of the backend that answered.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Generic, List, Optional, Sequence, TypeVar

import httpx
from pydantic import ValidationError

from audiocore.classify import classify
from audiocore.models import (
    MediaKind,
    Playlist,
    PlaylistInfo,
    ResolvedAudio,
    SearchResult,
    VideoInfo,
)
from audiomab.backend import (
    AudioStreamHandle,
    Backend,
    BackendError,
    BackendTimeout,
    InvalidInput,
    MalformedResponse,
)
from audiomab.config import Settings
from audiomab.external import ExternalResolverBackend
from audiomab.invidious import InvidiousBackend
from audiomab.piped import PipedBackend
from audiomab.ytdlp import YtDlpBackend

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_SEARCH_LIMIT = 50


# ---------------------------------------------------------------------------
# Results & failures
# ---------------------------------------------------------------------------

@dataclass
class Resolved(Generic[T]):
    """A successful answer and the backend that produced it."""

    value: T
    source: str


@dataclass
class AudioPayload:
    """A fully read audio body."""

    blob: bytes
    content_type: str


class AllBackendsUnavailable(Exception):
    """Every configured backend failed; the only error surfaced to users."""

    def __init__(self, operation: str, failures: Sequence[BackendError]):
        self.operation = operation
        self.failures = list(failures)
        super().__init__(
            f"{operation}: all backends unavailable ({len(self.failures)} attempts)"
        )

    @property
    def attempts(self) -> int:
        return len(self.failures)

    @property
    def timed_out(self) -> bool:
        """True when the final attempt ended in a timeout (→ HTTP 504)."""
        return bool(self.failures) and isinstance(self.failures[-1], BackendTimeout)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Timeouts:
    """Per-attempt timeouts (seconds) by operation class."""

    search: float = 8.0
    video: float = 10.0
    playlist: float = 15.0
    stream: float = 1200.0


@dataclass(frozen=True)
class EngineConfig:
    """Explicit engine configuration; built once from ``Settings``."""

    local_resolver_enabled: bool = False
    cookiefile: str = ""
    external_url: str = ""
    invidious_instances: tuple[str, ...] = ()
    piped_instances: tuple[str, ...] = ()
    timeouts: Timeouts = field(default_factory=Timeouts)
    connect_timeout: float = 10.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "EngineConfig":
        return cls(
            local_resolver_enabled=settings.local_resolver_enabled,
            cookiefile=settings.ytdlp_cookiefile.strip(),
            external_url=settings.ytdlp_api_url.strip(),
            invidious_instances=tuple(settings.invidious_instance_list),
            piped_instances=tuple(settings.piped_instance_list),
            timeouts=Timeouts(
                search=settings.search_timeout,
                video=settings.video_timeout,
                playlist=settings.playlist_timeout,
                stream=settings.stream_timeout,
            ),
            connect_timeout=settings.connect_timeout,
        )


def build_backends(
    config: EngineConfig,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> List[Backend]:
    """Materialize the declared attempt order."""
    backends: List[Backend] = []
    if config.local_resolver_enabled:
        backends.append(YtDlpBackend(cookiefile=config.cookiefile or None, transport=transport))
    if config.external_url:
        backends.append(
            ExternalResolverBackend(
                config.external_url,
                transport=transport,
                connect_timeout=config.connect_timeout,
            )
        )
    for url in config.invidious_instances:
        backends.append(
            InvidiousBackend(url, transport=transport, connect_timeout=config.connect_timeout)
        )
    for url in config.piped_instances:
        backends.append(
            PipedBackend(url, transport=transport, connect_timeout=config.connect_timeout)
        )
    return backends


def build_engine(
    config: EngineConfig,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> "ResolutionEngine":
    return ResolutionEngine(build_backends(config, transport=transport), config.timeouts)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

def _require(value: str, what: str) -> str:
    value = (value or "").strip()
    if not value:
        raise InvalidInput(f"{what} is required")
    if not value.isprintable():
        raise InvalidInput(f"{what} contains non-printable characters")
    return value


class ResolutionEngine:
    """Walks the backend list for every operation; stateless between calls."""

    def __init__(self, backends: Sequence[Backend], timeouts: Optional[Timeouts] = None):
        self.backends: List[Backend] = list(backends)
        self.timeouts = timeouts or Timeouts()

    @property
    def backend_names(self) -> List[str]:
        return [b.name for b in self.backends]

    async def _run(
        self,
        operation: str,
        timeout: float,
        call: Callable[[Backend], Awaitable[T]],
    ) -> Resolved[T]:
        failures: List[BackendError] = []
        for backend in self.backends:
            try:
                value = await asyncio.wait_for(call(backend), timeout)
            except asyncio.TimeoutError:
                err: BackendError = BackendTimeout(backend.name, f"{operation} exceeded {timeout:g}s")
            except BackendError as exc:
                err = exc
            except (ValidationError, KeyError, TypeError, ValueError, httpx.InvalidURL) as exc:
                err = MalformedResponse(backend.name, f"{type(exc).__name__}: {exc}")
            else:
                logger.info("%s answered by %s", operation, backend.name)
                return Resolved(value, backend.name)

            logger.warning("%s via %s failed: %s", operation, backend.name, err)
            failures.append(err)

        raise AllBackendsUnavailable(operation, failures)

    # ── Primitive operations ────────────────────────────────────

    async def fetch_video(self, video_id: str) -> Resolved[VideoInfo]:
        video_id = _require(video_id, "Video ID")
        timeout = self.timeouts.video
        return await self._run(
            f"fetch_video({video_id})",
            timeout,
            lambda b: b.fetch_video(video_id, timeout=timeout),
        )

    async def fetch_playlist(self, playlist_id: str) -> Resolved[PlaylistInfo]:
        playlist_id = _require(playlist_id, "Playlist ID")
        timeout = self.timeouts.playlist
        return await self._run(
            f"fetch_playlist({playlist_id})",
            timeout,
            lambda b: b.fetch_playlist(playlist_id, timeout=timeout),
        )

    async def search(self, query: str, limit: int = 15) -> Resolved[List[SearchResult]]:
        query = _require(query, "Query")
        limit = max(1, min(int(limit), MAX_SEARCH_LIMIT))
        timeout = self.timeouts.search
        return await self._run(
            f"search({query!r})",
            timeout,
            lambda b: b.search(query, limit, timeout=timeout),
        )

    async def open_stream(self, video_id: str) -> Resolved[AudioStreamHandle]:
        """Open a raw audio relay; the caller owns (and must close) the handle."""
        video_id = _require(video_id, "Video ID")
        timeout = self.timeouts.stream
        return await self._run(
            f"open_stream({video_id})",
            timeout,
            lambda b: b.open_stream(video_id, timeout=timeout),
        )

    async def fetch_audio(self, video_id: str) -> Resolved[AudioPayload]:
        """Download the whole audio body.

        Opening and reading count as one attempt, so a body that breaks off
        midway falls through to the next backend like any other failure.
        """
        video_id = _require(video_id, "Video ID")
        timeout = self.timeouts.stream

        async def attempt(backend: Backend) -> AudioPayload:
            handle = await backend.open_stream(video_id, timeout=timeout)
            try:
                blob = await handle.read_all()
            finally:
                await handle.aclose()
            return AudioPayload(blob, handle.content_type or "audio/webm")

        return await self._run(f"fetch_audio({video_id})", timeout, attempt)

    # ── Composed operations ─────────────────────────────────────

    async def resolve_audio(self, video_id: str) -> ResolvedAudio:
        """Fresh playable URL plus normalized track metadata."""
        resolved = await self.fetch_video(video_id)
        info = resolved.value
        return ResolvedAudio(
            audioUrl=info.audioUrl,
            source=resolved.source,
            track=info.to_track(),
        )

    async def import_url(self, url: str) -> Resolved[Playlist]:
        """Classify *url* and resolve it into a playlist.

        A single video comes back wrapped as a one-track playlist.
        """
        _require(url, "URL")
        ref = classify(url)
        if ref is None:
            raise InvalidInput("Invalid YouTube URL")

        if ref.kind is MediaKind.PLAYLIST:
            resolved_pl = await self.fetch_playlist(ref.id)
            return Resolved(resolved_pl.value.to_playlist(), resolved_pl.source)

        resolved_video = await self.fetch_video(ref.id)
        return Resolved(Playlist.wrap_track(resolved_video.value.to_track()), resolved_video.source)
