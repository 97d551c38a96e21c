"""Player REST API — a server-held playback session driven by the client.

The client owns the actual audio element: it polls ``/player/status`` for
``src``, loads it, and reports ``ready``/``ended``/``error``/``position``
back so the controller can advance its state machine.
"""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from audiocore.models import Track
from audiomab.backend import InvalidInput
from audiomab.deps import get_controller
from audiomab.player import PlaybackController, RemoteAudioOutput

router = APIRouter(prefix="/player", tags=["player"])


class LoadRequest(BaseModel):
    tracks: List[Track] = Field(min_length=1)
    index: int = 0


class ReadyRequest(BaseModel):
    videoId: Optional[str] = None


class SeekRequest(BaseModel):
    position: float = Field(ge=0)


class VolumeRequest(BaseModel):
    volume: float = Field(ge=0, le=1)


class ErrorRequest(BaseModel):
    message: str = "Failed to load audio"


def _status(controller: PlaybackController) -> JSONResponse:
    status = controller.status()
    output = controller.output
    if isinstance(output, RemoteAudioOutput):
        status["src"] = output.src
        status["playing"] = output.playing
    return JSONResponse(status)


# ---------------------------------------------------------------------------
# Queue / track changes
# ---------------------------------------------------------------------------

@router.post("/load")
async def load(body: LoadRequest, controller: PlaybackController = Depends(get_controller)):
    if not 0 <= body.index < len(body.tracks):
        raise InvalidInput("Index out of range")
    controller.load_track(body.tracks[body.index], body.tracks, body.index)
    await controller.wait_settled()
    return _status(controller)


@router.post("/next")
async def next_track(controller: PlaybackController = Depends(get_controller)):
    controller.next()
    await controller.wait_settled()
    return _status(controller)


@router.post("/previous")
async def previous_track(controller: PlaybackController = Depends(get_controller)):
    controller.previous()
    await controller.wait_settled()
    return _status(controller)


@router.post("/shuffle")
async def toggle_shuffle(controller: PlaybackController = Depends(get_controller)):
    controller.toggle_shuffle()
    return _status(controller)


@router.post("/repeat")
async def cycle_repeat(controller: PlaybackController = Depends(get_controller)):
    controller.cycle_repeat()
    return _status(controller)


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------

@router.post("/play")
async def play(controller: PlaybackController = Depends(get_controller)):
    controller.play()
    return _status(controller)


@router.post("/pause")
async def pause(controller: PlaybackController = Depends(get_controller)):
    controller.pause()
    return _status(controller)


@router.post("/toggle")
async def toggle(controller: PlaybackController = Depends(get_controller)):
    controller.toggle_play()
    return _status(controller)


@router.post("/seek")
async def seek(body: SeekRequest, controller: PlaybackController = Depends(get_controller)):
    controller.seek(body.position)
    return _status(controller)


@router.post("/volume")
async def volume(body: VolumeRequest, controller: PlaybackController = Depends(get_controller)):
    controller.set_volume(body.volume)
    return _status(controller)


# ---------------------------------------------------------------------------
# Signals reported by the client's audio element
# ---------------------------------------------------------------------------

@router.post("/ready")
async def ready(
    body: ReadyRequest | None = None,
    controller: PlaybackController = Depends(get_controller),
):
    controller.on_ready(body.videoId if body else None)
    return _status(controller)


@router.post("/ended")
async def ended(controller: PlaybackController = Depends(get_controller)):
    controller.on_ended()
    await controller.wait_settled()
    return _status(controller)


@router.post("/error")
async def error(body: ErrorRequest, controller: PlaybackController = Depends(get_controller)):
    controller.on_error(body.message)
    return _status(controller)


@router.post("/position")
async def position(body: SeekRequest, controller: PlaybackController = Depends(get_controller)):
    output = controller.output
    if isinstance(output, RemoteAudioOutput):
        output.report_position(body.position)
    return _status(controller)


@router.get("/status")
async def status(controller: PlaybackController = Depends(get_controller)):
    return _status(controller)
