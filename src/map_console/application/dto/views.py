"""JSON-ready views of console entities, shared by REST and WebSocket output."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from map_console.application.ports.clock import display_time
from map_console.domain.entities.logged_event import LoggedEvent
from map_console.domain.entities.session import Session
from map_console.domain.entities.snapshot import Snapshot
from map_console.domain.entities.transcript import TranscriptEntry


def session_view(session: Session | None) -> dict[str, Any]:
    if session is None:
        return {"id": None, "state": "idle", "status": "idle", "model": None, "error": None}
    return {
        "id": str(session.id),
        "state": session.state.value,
        "status": session.status,
        "model": session.model,
        "error": session.error,
    }


def transcript_entry_view(entry: TranscriptEntry) -> dict[str, Any]:
    return {
        "id": str(entry.id),
        "role": entry.role.value,
        "text": entry.text,
        "preview": entry.preview,
        "created_at": entry.created_at.isoformat(),
    }


def logged_event_view(event: LoggedEvent) -> dict[str, Any]:
    return {
        "direction": event.direction.value,
        "type": event.type,
        "event_id": event.event_id,
        "timestamp": display_time(event.timestamp),
        "payload": event.payload,
    }


def snapshot_view(snapshot: Snapshot, now: datetime) -> dict[str, Any]:
    return {
        "captured_at": snapshot.captured_at.isoformat(),
        "relative_time": snapshot.relative_time(now),
        "center": {"lat": snapshot.center.lat, "lng": snapshot.center.lng},
        "zoom": snapshot.zoom,
        "media_type": snapshot.media_type,
        "data_url": snapshot.data_url,
    }
