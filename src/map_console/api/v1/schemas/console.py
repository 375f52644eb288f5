from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from map_console.domain.value_objects.geo import LatLng, MapView


class LatLngModel(BaseModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class ViewUpdateRequest(BaseModel):
    center: LatLngModel
    zoom: int = Field(ge=0, le=22)

    def to_view(self) -> MapView:
        return MapView(center=LatLng(lat=self.center.lat, lng=self.center.lng), zoom=self.zoom)


class TextMessageRequest(BaseModel):
    text: str


class MicrophoneRequest(BaseModel):
    enabled: bool


class SnapshotTimerRequest(BaseModel):
    running: bool


class EventIdsResponse(BaseModel):
    event_ids: list[str]


class SessionResponse(BaseModel):
    id: str | None
    state: str
    status: str
    model: str | None
    error: str | None


class TranscriptEntryResponse(BaseModel):
    id: str
    role: str
    text: str
    preview: bool
    created_at: str


class LoggedEventResponse(BaseModel):
    direction: str
    type: str
    event_id: str | None
    timestamp: str
    payload: dict[str, Any]


class SnapshotResponse(BaseModel):
    captured_at: str
    relative_time: str
    center: LatLngModel
    zoom: int
    media_type: str
    data_url: str


class ViewResponse(BaseModel):
    center: LatLngModel
    zoom: int


class CaptureStatusResponse(BaseModel):
    status: str
    message: str
    error: str | None
    strategy: str
    view: ViewResponse


class SnapshotCaptureResponse(BaseModel):
    captured: bool
    snapshot: SnapshotResponse | None = None


class ConsoleStateResponse(BaseModel):
    session: SessionResponse
    microphone_enabled: bool
    pending_events: int
    transcript: list[TranscriptEntryResponse]
    events: list[LoggedEventResponse]
    capture: CaptureStatusResponse
    snapshots: list[SnapshotResponse]
