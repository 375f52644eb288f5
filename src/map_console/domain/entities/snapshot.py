from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from map_console.domain.value_objects.geo import LatLng


@dataclass(frozen=True, slots=True)
class Snapshot:
    image_base64: str
    media_type: str
    center: LatLng
    zoom: int
    captured_at: datetime

    @property
    def data_url(self) -> str:
        return f"data:{self.media_type};base64,{self.image_base64}"

    def relative_time(self, now: datetime) -> str:
        return relative_time(self.captured_at, now)


def relative_time(captured_at: datetime | None, now: datetime) -> str:
    """Human readable age of a capture, recomputed on every display."""
    if captured_at is None:
        return "never"
    delta_ms = (now - captured_at).total_seconds() * 1000
    if delta_ms < 1000:
        return "just now"
    if delta_ms < 60000:
        return f"{round(delta_ms / 1000)}s ago"
    return f"{round(delta_ms / 60000)}m ago"
