"""SDP offer/answer exchange with the realtime calls endpoint."""
from __future__ import annotations

import logging

import httpx

from map_console.application.exceptions import NegotiationError

logger = logging.getLogger(__name__)


class HttpSignalingClient:
    def __init__(self, client: httpx.AsyncClient, url: str) -> None:
        self._client = client
        self._url = url

    async def exchange(self, offer_sdp: str, credential: str, model: str) -> str:
        try:
            response = await self._client.post(
                self._url,
                params={"model": model},
                content=offer_sdp,
                headers={
                    "Authorization": f"Bearer {credential}",
                    "Content-Type": "application/sdp",
                },
            )
        except httpx.HTTPError as exc:
            raise NegotiationError(f"Realtime handshake request failed: {exc}", details=str(exc)) from exc

        if not response.is_success:
            body = response.text
            logger.error("Realtime handshake failed: %s", body or response.status_code)
            raise NegotiationError(
                f"Realtime API responded with status {response.status_code}",
                details=body,
            )
        return response.text
