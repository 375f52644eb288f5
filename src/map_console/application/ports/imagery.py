from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from map_console.domain.value_objects.geo import MapView


@dataclass(frozen=True, slots=True)
class CapturedImage:
    content: bytes
    media_type: str = "image/png"


class ImageSource(Protocol):
    async def fetch(self, view: MapView) -> CapturedImage: ...
