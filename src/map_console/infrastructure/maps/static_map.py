"""Static Maps image source used for viewport snapshots."""
from __future__ import annotations

import httpx

from map_console.application.exceptions import CaptureError
from map_console.application.ports.imagery import CapturedImage
from map_console.domain.value_objects.geo import MapView


class StaticMapImageSource:
    def __init__(
        self,
        client: httpx.AsyncClient,
        url: str,
        api_key: str,
        *,
        width: int = 480,
        height: int = 640,
        scale: int = 2,
        map_type: str = "roadmap",
    ) -> None:
        self._client = client
        self._url = url
        self._api_key = api_key
        self._size = f"{width}x{height}"
        self._scale = scale
        self._map_type = map_type

    def params(self, view: MapView) -> dict[str, str]:
        return {
            "center": f"{view.center.lat},{view.center.lng}",
            "zoom": str(view.zoom),
            "size": self._size,
            "scale": str(self._scale),
            "maptype": self._map_type,
            "key": self._api_key,
        }

    async def fetch(self, view: MapView) -> CapturedImage:
        try:
            response = await self._client.get(self._url, params=self.params(view))
        except httpx.HTTPError as exc:
            raise CaptureError(f"Static map request failed: {exc}") from exc
        if not response.is_success:
            raise CaptureError(f"Static map request failed with status {response.status_code}")
        media_type = response.headers.get("content-type", "").split(";")[0].strip()
        return CapturedImage(content=response.content, media_type=media_type or "image/png")
