from __future__ import annotations

from fastapi import APIRouter

from map_console.api.deps import ConsoleDep
from map_console.api.v1.schemas.console import (
    ConsoleStateResponse,
    EventIdsResponse,
    MicrophoneRequest,
    SessionResponse,
    SnapshotCaptureResponse,
    SnapshotResponse,
    SnapshotTimerRequest,
    TextMessageRequest,
    ViewUpdateRequest,
)
from map_console.application.dto.views import session_view, snapshot_view

router = APIRouter(prefix="/api/v1/console", tags=["console"])


@router.get("/state", response_model=ConsoleStateResponse)
async def get_state(console: ConsoleDep) -> ConsoleStateResponse:
    return ConsoleStateResponse.model_validate(console.state())


@router.post("/session", response_model=SessionResponse, status_code=201)
async def start_session(console: ConsoleDep) -> SessionResponse:
    session = await console.start_session()
    return SessionResponse.model_validate(session_view(session))


@router.delete("/session", response_model=SessionResponse)
async def stop_session(console: ConsoleDep) -> SessionResponse:
    await console.stop_session()
    return SessionResponse.model_validate(session_view(console.session))


@router.post("/messages", response_model=EventIdsResponse, status_code=202)
async def send_message(body: TextMessageRequest, console: ConsoleDep) -> EventIdsResponse:
    return EventIdsResponse(event_ids=console.send_text_message(body.text))


@router.post("/responses", response_model=EventIdsResponse, status_code=202)
async def request_response(console: ConsoleDep) -> EventIdsResponse:
    return EventIdsResponse(event_ids=[console.request_response()])


@router.put("/microphone", response_model=MicrophoneRequest)
async def set_microphone(body: MicrophoneRequest, console: ConsoleDep) -> MicrophoneRequest:
    console.set_microphone_enabled(body.enabled)
    return MicrophoneRequest(enabled=console.microphone_enabled)


@router.put("/view", response_model=ViewUpdateRequest)
async def update_view(body: ViewUpdateRequest, console: ConsoleDep) -> ViewUpdateRequest:
    console.update_view(body.to_view())
    return body


@router.post("/snapshots", response_model=SnapshotCaptureResponse)
async def capture_snapshot(console: ConsoleDep) -> SnapshotCaptureResponse:
    snapshot = await console.capture_snapshot()
    if snapshot is None:
        return SnapshotCaptureResponse(captured=False)
    view = snapshot_view(snapshot, snapshot.captured_at)
    return SnapshotCaptureResponse(captured=True, snapshot=SnapshotResponse.model_validate(view))


@router.put("/snapshots/timer", response_model=SnapshotTimerRequest)
async def set_snapshot_timer(body: SnapshotTimerRequest, console: ConsoleDep) -> SnapshotTimerRequest:
    if body.running:
        console.start_snapshots()
    else:
        console.stop_snapshots()
    return SnapshotTimerRequest(running=console.capturer.running)
