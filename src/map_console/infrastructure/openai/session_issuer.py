"""Server side of the credential proxy: mint an ephemeral realtime session."""
from __future__ import annotations

import logging
from typing import Any

import httpx

from map_console.application.exceptions import CredentialIssueError

logger = logging.getLogger(__name__)

MODALITIES = ["text", "audio"]


class RealtimeSessionIssuer:
    def __init__(self, client: httpx.AsyncClient, url: str) -> None:
        self._client = client
        self._url = url

    async def create_session(self, api_key: str, model: str, voice: str) -> dict[str, Any]:
        if not api_key:
            raise CredentialIssueError("Missing OPENAI_API_KEY environment variable.")

        try:
            response = await self._client.post(
                self._url,
                headers={"Authorization": f"Bearer {api_key}"},
                json={"model": model, "voice": voice, "modalities": MODALITIES},
            )
        except httpx.HTTPError as exc:
            logger.error("Failed to fetch session token: %s", exc)
            raise CredentialIssueError("Failed to fetch session token") from exc

        if not response.is_success:
            raise CredentialIssueError(
                "Failed to create session",
                status_code=response.status_code,
                details=response.text,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise CredentialIssueError("Failed to fetch session token") from exc
