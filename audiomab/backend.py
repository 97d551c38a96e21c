"""Backend adapter interface shared by every resolver.

Every adapter answers the same four questions (video, playlist, search,
raw audio relay) and returns the same normalized models, translating its
own field names at this boundary.  Failures are reported as the typed
``BackendError`` subclasses below so the resolution engine can decide
whether to fall through to the next backend.
"""

from __future__ import annotations

import abc
import logging
from typing import Any, AsyncIterator, Awaitable, Callable, Optional
from urllib.parse import urlsplit

import httpx

from audiocore.models import PlaylistInfo, SearchResult, VideoInfo

logger = logging.getLogger(__name__)

_DEFAULT_CONNECT_TIMEOUT = 10.0  # seconds
_RELAY_CHUNK_SIZE = 64 * 1024


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class BackendError(Exception):
    """A single backend failed to answer."""

    reason = "error"

    def __init__(self, backend: str, detail: str = ""):
        self.backend = backend
        self.detail = detail
        super().__init__(f"{backend}: {self.reason}" + (f" ({detail})" if detail else ""))


class BackendUnavailable(BackendError):
    reason = "unavailable"


class BackendTimeout(BackendError):
    reason = "timeout"


class NotFound(BackendError):
    reason = "not found"


class MalformedResponse(BackendError):
    reason = "malformed response"


class InvalidInput(ValueError):
    """Bad or unclassifiable user input; no backend is attempted."""


# ---------------------------------------------------------------------------
# Raw audio relay
# ---------------------------------------------------------------------------

class AudioStreamHandle:
    """An opened audio byte stream. The caller must ``aclose()`` it."""

    def __init__(
        self,
        chunks: AsyncIterator[bytes],
        *,
        content_type: str = "audio/webm",
        content_length: Optional[int] = None,
        close: Optional[Callable[[], Awaitable[None]]] = None,
    ):
        self._chunks = chunks
        self.content_type = content_type
        self.content_length = content_length
        self._close = close
        self._closed = False

    @classmethod
    def from_bytes(cls, data: bytes, *, content_type: str = "audio/webm") -> "AudioStreamHandle":
        async def _gen() -> AsyncIterator[bytes]:
            yield data

        return cls(_gen(), content_type=content_type, content_length=len(data))

    async def aiter_bytes(self) -> AsyncIterator[bytes]:
        async for chunk in self._chunks:
            if chunk:
                yield chunk

    async def read_all(self) -> bytes:
        buf = bytearray()
        async for chunk in self.aiter_bytes():
            buf.extend(chunk)
        return bytes(buf)

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._close is not None:
            await self._close()


def _raise_for_status(backend: str, resp: httpx.Response) -> None:
    if resp.status_code < 400:
        return
    if resp.status_code == 404:
        raise NotFound(backend, f"HTTP {resp.status_code}")
    raise BackendUnavailable(backend, f"HTTP {resp.status_code}")


async def open_relay(
    backend: str,
    url: str,
    *,
    timeout: float,
    connect_timeout: float = _DEFAULT_CONNECT_TIMEOUT,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    headers: Optional[dict[str, str]] = None,
) -> AudioStreamHandle:
    """Open *url* in streaming mode and wrap the body as an ``AudioStreamHandle``.

    The request is relayed rather than redirected so clients never hit the
    upstream origin directly.
    """
    client = httpx.AsyncClient(
        transport=transport,
        timeout=httpx.Timeout(timeout, connect=min(connect_timeout, timeout)),
        follow_redirects=True,
    )
    try:
        request = client.build_request("GET", url, headers=headers)
        resp = await client.send(request, stream=True)
    except httpx.TimeoutException as exc:
        await client.aclose()
        raise BackendTimeout(backend, "stream open timed out") from exc
    except httpx.HTTPError as exc:
        await client.aclose()
        raise BackendUnavailable(backend, str(exc)) from exc
    except httpx.InvalidURL as exc:
        await client.aclose()
        raise BackendUnavailable(backend, f"invalid URL: {exc}") from exc

    try:
        _raise_for_status(backend, resp)
    except BackendError:
        await resp.aclose()
        await client.aclose()
        raise

    async def _close() -> None:
        await resp.aclose()
        await client.aclose()

    async def _chunks() -> AsyncIterator[bytes]:
        # A body that breaks off midway is a failure of this backend too.
        try:
            async for chunk in resp.aiter_bytes(_RELAY_CHUNK_SIZE):
                yield chunk
        except httpx.TimeoutException as exc:
            raise BackendTimeout(backend, "stream read timed out") from exc
        except httpx.HTTPError as exc:
            raise BackendUnavailable(backend, f"stream broke off: {exc}") from exc

    length = resp.headers.get("content-length")
    return AudioStreamHandle(
        _chunks(),
        content_type=resp.headers.get("content-type") or "audio/webm",
        content_length=int(length) if length and length.isdigit() else None,
        close=_close,
    )


# ---------------------------------------------------------------------------
# Interface
# ---------------------------------------------------------------------------

class Backend(abc.ABC):
    """Common contract of every resolver backend."""

    name: str = "backend"
    transport: Optional[httpx.AsyncBaseTransport] = None
    connect_timeout: float = _DEFAULT_CONNECT_TIMEOUT

    @abc.abstractmethod
    async def fetch_video(self, video_id: str, *, timeout: float) -> VideoInfo:
        """Metadata plus the best audio-only stream URL."""

    @abc.abstractmethod
    async def fetch_playlist(self, playlist_id: str, *, timeout: float) -> PlaylistInfo:
        """Playlist metadata plus its ordered entries."""

    @abc.abstractmethod
    async def search(self, query: str, limit: int, *, timeout: float) -> list[SearchResult]:
        """Video search results, at most *limit*."""

    async def open_stream(self, video_id: str, *, timeout: float) -> AudioStreamHandle:
        """Relay the raw audio bytes of *video_id*.

        Default: resolve the best audio URL, then stream it through httpx.
        """
        info = await self.fetch_video(video_id, timeout=min(timeout, 30.0))
        return await open_relay(
            self.name,
            info.audioUrl,
            timeout=timeout,
            connect_timeout=self.connect_timeout,
            transport=self.transport,
        )

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


class HttpBackend(Backend):
    """Base for backends that speak JSON over HTTP to a single base URL."""

    kind = "http"

    def __init__(
        self,
        base_url: str,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        connect_timeout: float = _DEFAULT_CONNECT_TIMEOUT,
        name: Optional[str] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.transport = transport
        self.connect_timeout = connect_timeout
        self.name = name or f"{self.kind}:{urlsplit(self.base_url).netloc or self.base_url}"

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            transport=self.transport,
            timeout=httpx.Timeout(timeout, connect=min(self.connect_timeout, timeout)),
            headers={"Accept": "application/json"},
            follow_redirects=True,
        )

    async def _request_json(self, method: str, path: str, *, timeout: float, **kwargs) -> Any:
        """Perform a request and decode JSON, mapping failures to ``BackendError``."""
        try:
            async with self._client(timeout) as client:
                resp = await client.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            raise BackendTimeout(self.name, f"{method} {path}") from exc
        except httpx.HTTPError as exc:
            raise BackendUnavailable(self.name, str(exc) or type(exc).__name__) from exc
        except httpx.InvalidURL as exc:
            raise BackendUnavailable(self.name, f"invalid URL: {exc}") from exc

        _raise_for_status(self.name, resp)
        try:
            return resp.json()
        except ValueError as exc:
            raise MalformedResponse(self.name, "body is not JSON") from exc

    async def _get_json(self, path: str, *, timeout: float, params: Optional[dict] = None) -> Any:
        return await self._request_json("GET", path, timeout=timeout, params=params)

    def _expect_dict(self, data: Any) -> dict:
        if not isinstance(data, dict):
            raise MalformedResponse(self.name, f"expected object, got {type(data).__name__}")
        return data

    def _expect_list(self, data: Any) -> list:
        if not isinstance(data, list):
            raise MalformedResponse(self.name, f"expected array, got {type(data).__name__}")
        return data
