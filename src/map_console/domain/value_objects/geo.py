from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class LatLng:
    lat: float
    lng: float

    def label(self, digits: int = 4) -> str:
        return f"{self.lat:.{digits}f}, {self.lng:.{digits}f}"


@dataclass(frozen=True, slots=True)
class MapView:
    """Viewport reported by the map widget after a pan/zoom settles."""

    center: LatLng
    zoom: int
