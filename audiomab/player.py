"""Playback controller — the single owner of the audio output.

Manages the queue, shuffle/repeat, and the per-track resolution that feeds
the output.  Every track change:

1. silences the output and cancels the in-flight resolution,
2. bumps a monotonically increasing generation counter,
3. resolves audio (offline cache first, then the resolution engine),
4. applies the source only if its generation is still current.

Step 4 is what keeps rapid skipping correct: a backend may ignore
cancellation and answer late, and that answer must never reach the output.
"""

from __future__ import annotations

import abc
import asyncio
import logging
import random
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Protocol, Sequence

from audiocore.models import ResolvedAudio, Track
from audiocore.queue import PlaybackQueue
from audiomab.engine import AllBackendsUnavailable
from audiomab.offline_cache import OfflineCacheManager

logger = logging.getLogger(__name__)

RESTART_THRESHOLD = 3.0  # seconds into a track before "previous" restarts it
LOAD_ERROR_MESSAGE = "Failed to load audio stream"
OFFLINE_SOURCE = "offline-cache"
CACHED_SRC = "/cache/{video_id}"


# ---------------------------------------------------------------------------
# Controller states
# ---------------------------------------------------------------------------

class PlayerState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    PLAYING = "playing"
    PAUSED = "paused"
    ERRORED = "errored"


class RepeatMode(str, Enum):
    OFF = "off"
    ALL = "all"
    ONE = "one"

    def cycled(self) -> "RepeatMode":
        order = [RepeatMode.OFF, RepeatMode.ALL, RepeatMode.ONE]
        return order[(order.index(self) + 1) % len(order)]


# ---------------------------------------------------------------------------
# Audio output primitive
# ---------------------------------------------------------------------------

@dataclass
class AudioSource:
    """What the output should play: a resolved URL or a cached blob."""

    video_id: str
    url: str = ""
    blob: Optional[bytes] = None
    content_type: str = ""
    origin: str = ""

    @property
    def is_cached(self) -> bool:
        return self.blob is not None


class AudioOutput(abc.ABC):
    """The underlying playback primitive. Only the controller may drive it."""

    @abc.abstractmethod
    def set_source(self, source: AudioSource) -> None: ...

    @abc.abstractmethod
    def clear(self) -> None:
        """Stop immediately and drop the current source."""

    @abc.abstractmethod
    def play(self) -> None: ...

    @abc.abstractmethod
    def pause(self) -> None: ...

    @abc.abstractmethod
    def seek(self, position: float) -> None: ...

    @abc.abstractmethod
    def set_volume(self, volume: float) -> None: ...

    @property
    @abc.abstractmethod
    def position(self) -> float: ...


class RemoteAudioOutput(AudioOutput):
    """Output mirrored to a remote client that owns the real audio element.

    The client polls the controller status for ``source`` and reports back
    position and readiness.
    """

    def __init__(self):
        self.source: Optional[AudioSource] = None
        self.playing = False
        self.volume = 1.0
        self._position = 0.0

    def set_source(self, source: AudioSource) -> None:
        self.source = source
        self.playing = False
        self._position = 0.0

    def clear(self) -> None:
        self.source = None
        self.playing = False
        self._position = 0.0

    def play(self) -> None:
        if self.source is not None:
            self.playing = True

    def pause(self) -> None:
        self.playing = False

    def seek(self, position: float) -> None:
        self._position = max(0.0, position)

    def set_volume(self, volume: float) -> None:
        self.volume = volume

    def report_position(self, position: float) -> None:
        self._position = max(0.0, position)

    @property
    def src(self) -> Optional[str]:
        """What the client's audio element should load."""
        if self.source is None:
            return None
        if self.source.is_cached:
            return CACHED_SRC.format(video_id=self.source.video_id)
        return self.source.url

    @property
    def position(self) -> float:
        return self._position


class AudioResolver(Protocol):
    async def resolve_audio(self, video_id: str) -> ResolvedAudio: ...


# ---------------------------------------------------------------------------
# Controller
# ---------------------------------------------------------------------------

class PlaybackController:
    """Client-side playback state machine.

    ``idle → loading → ready → playing ⇄ paused``; ``loading`` is re-entered
    on every track change and ``errored`` is reachable from ``loading``.
    Never raises past its boundary: failures set ``errored`` plus a message.
    """

    def __init__(
        self,
        output: AudioOutput,
        resolver: AudioResolver,
        cache: Optional[OfflineCacheManager] = None,
        *,
        rng: Optional[random.Random] = None,
    ):
        self.output = output
        self.resolver = resolver
        self.cache = cache
        self._rng = rng or random.Random()

        self.state = PlayerState.IDLE
        self.queue = PlaybackQueue(rng=self._rng)
        self.shuffle = False
        self.repeat = RepeatMode.OFF
        self.volume = 1.0
        self.error_message: Optional[str] = None
        self.source_origin: Optional[str] = None

        self._generation = 0
        self._task: Optional[asyncio.Task] = None
        self._stale: set[asyncio.Task] = set()

    # ── Properties ──────────────────────────────────────────────

    @property
    def current_track(self) -> Optional[Track]:
        return self.queue.current

    @property
    def generation(self) -> int:
        return self._generation

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    # ── Track loading ───────────────────────────────────────────

    def load_track(self, track: Track, queue: Sequence[Track], index: int) -> asyncio.Task:
        """Switch to *track* within *queue*; returns the resolution task.

        *track* wins over *index*: when ``queue[index]`` is a different track
        the first entry with ``track.id`` is used instead.  An empty *queue*
        plays *track* alone.  Raises ``ValueError`` when *track* is not in
        *queue*.
        """
        tracks = list(queue) or [track]
        if not (0 <= index < len(tracks) and tracks[index].id == track.id):
            index = next((i for i, t in enumerate(tracks) if t.id == track.id), -1)
            if index < 0:
                raise ValueError(f"track {track.id!r} is not in the queue")
        self.queue = PlaybackQueue(tracks, index, shuffled=self.shuffle, rng=self._rng)
        return self._start(self.queue.current or track)

    def _cancel_inflight(self) -> None:
        task = self._task
        self._task = None
        if task is not None and not task.done():
            task.cancel()
            self._stale.add(task)
            task.add_done_callback(self._stale.discard)

    def _start(self, track: Track) -> asyncio.Task:
        self.output.clear()
        self._cancel_inflight()
        self._generation += 1
        self.state = PlayerState.LOADING
        self.error_message = None
        self.source_origin = None
        logger.info("Loading %s (%r), generation %d", track.videoId, track.title, self._generation)
        self._task = asyncio.create_task(self._resolve(track, self._generation))
        return self._task

    async def _resolve(self, track: Track, generation: int) -> None:
        video_id = track.videoId
        try:
            source = await self._cached_source(video_id)
            if source is None:
                resolved = await self.resolver.resolve_audio(video_id)
                source = AudioSource(video_id=video_id, url=resolved.audioUrl, origin=resolved.source)
        except AllBackendsUnavailable as exc:
            self._fail(generation, video_id, str(exc))
            return
        except Exception:
            logger.exception("Unexpected error resolving %s", video_id)
            self._fail(generation, video_id, "unexpected error")
            return

        if not self._is_current(generation):
            logger.debug("Track changed, discarding stale response for %s", video_id)
            return

        self.output.set_source(source)
        self.output.set_volume(self.volume)
        self.source_origin = source.origin
        self.state = PlayerState.READY

    async def _cached_source(self, video_id: str) -> Optional[AudioSource]:
        if self.cache is None or not await self.cache.is_cached(video_id):
            return None
        entry = await self.cache.get_cached_blob(video_id)
        if entry is None:
            return None
        logger.info("Using cached audio for %s", video_id)
        return AudioSource(
            video_id=video_id,
            blob=entry.blob,
            content_type=entry.content_type,
            origin=OFFLINE_SOURCE,
        )

    def _fail(self, generation: int, video_id: str, reason: str) -> None:
        if not self._is_current(generation):
            logger.debug("Ignoring failure for superseded track %s", video_id)
            return
        logger.warning("Failed to load %s: %s", video_id, reason)
        self.state = PlayerState.ERRORED
        self.error_message = LOAD_ERROR_MESSAGE

    async def wait_settled(self) -> None:
        """Wait for the current resolution to finish (tests, HTTP handlers)."""
        task = self._task
        if task is not None:
            await asyncio.wait({task})

    async def shutdown(self) -> None:
        self._cancel_inflight()
        pending = list(self._stale)
        if pending:
            await asyncio.wait(pending)
        self.output.clear()
        self.state = PlayerState.IDLE

    # ── Signals from the output primitive ───────────────────────

    def on_ready(self, video_id: Optional[str] = None) -> None:
        """Audio is ready to play → start output."""
        current = self.current_track
        if current is None or (video_id is not None and video_id != current.videoId):
            return
        if self.state is PlayerState.READY:
            self.output.play()
            self.state = PlayerState.PLAYING

    def on_ended(self) -> Optional[asyncio.Task]:
        """Natural end of track."""
        if self.current_track is None:
            return None
        if self.repeat is RepeatMode.ONE:
            self.output.seek(0)
            self.output.play()
            self.state = PlayerState.PLAYING
            return None
        return self._advance()

    def on_error(self, message: str = "Failed to load audio") -> None:
        """The output could not decode/load the applied source."""
        if self.current_track is None:
            return
        self.state = PlayerState.ERRORED
        self.error_message = message

    # ── User actions ────────────────────────────────────────────

    def _advance(self) -> Optional[asyncio.Task]:
        nxt = self.queue.advance(wrap=self.repeat is RepeatMode.ALL)
        if nxt is None:
            self.output.pause()
            if self.state is not PlayerState.ERRORED:
                self.state = PlayerState.PAUSED
            return None
        return self._start(nxt)

    def next(self) -> Optional[asyncio.Task]:
        if self.current_track is None:
            return None
        return self._advance()

    def previous(self) -> Optional[asyncio.Task]:
        if self.current_track is None:
            return None
        if (
            self.state in (PlayerState.PLAYING, PlayerState.PAUSED)
            and self.output.position > RESTART_THRESHOLD
        ):
            self.output.seek(0)
            return None
        prev = self.queue.retreat()
        return self._start(prev) if prev is not None else None

    def toggle_shuffle(self) -> bool:
        self.shuffle = not self.shuffle
        self.queue.set_shuffle(self.shuffle)
        return self.shuffle

    def cycle_repeat(self) -> RepeatMode:
        self.repeat = self.repeat.cycled()
        return self.repeat

    def play(self) -> None:
        if self.state in (PlayerState.READY, PlayerState.PAUSED):
            self.output.play()
            self.state = PlayerState.PLAYING

    def pause(self) -> None:
        if self.state in (PlayerState.READY, PlayerState.PLAYING):
            self.output.pause()
            self.state = PlayerState.PAUSED

    def toggle_play(self) -> None:
        if self.state is PlayerState.PLAYING:
            self.pause()
        else:
            self.play()

    def seek(self, position: float) -> None:
        self.output.seek(max(0.0, position))

    def set_volume(self, volume: float) -> None:
        self.volume = min(1.0, max(0.0, volume))
        self.output.set_volume(self.volume)

    # ── Serialization ───────────────────────────────────────────

    def status(self) -> dict[str, Any]:
        """Serialize for the status API."""
        track = self.current_track
        return {
            "state": self.state.value,
            "current_track": track.model_dump() if track else None,
            "index": self.queue.current_index if track else None,
            "queue_length": len(self.queue),
            "shuffle": self.shuffle,
            "repeat": self.repeat.value,
            "source": self.source_origin,
            "volume": self.volume,
            "position": self.output.position,
            "error_message": self.error_message,
        }
