"""Client for the local credential endpoint (`GET /session`)."""
from __future__ import annotations

import logging
from typing import Any

import httpx

from map_console.application.exceptions import CredentialError
from map_console.application.ports.credentials import EphemeralCredential

logger = logging.getLogger(__name__)


def extract_client_secret(payload: Any) -> str | None:
    """Find the ephemeral key; vendors have nested it differently over time."""
    if not isinstance(payload, dict):
        return None
    secret = payload.get("client_secret")
    if isinstance(secret, dict):
        secret = secret.get("value")
    if not secret:
        secret = payload.get("value")
    return secret if isinstance(secret, str) and secret else None


class HttpCredentialProvider:
    def __init__(self, client: httpx.AsyncClient, url: str) -> None:
        self._client = client
        self._url = url

    async def fetch(self) -> EphemeralCredential:
        try:
            response = await self._client.get(self._url)
        except httpx.HTTPError as exc:
            raise CredentialError(f"Token request failed: {exc}") from exc

        if response.status_code != 200:
            raise CredentialError(f"Token request failed with status {response.status_code}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise CredentialError("Token response is not JSON") from exc

        secret = extract_client_secret(payload)
        if secret is None:
            logger.error("Unexpected token payload: %r", payload)
            raise CredentialError("Missing ephemeral key in token response")

        model = payload.get("model")
        return EphemeralCredential(value=secret, model=model if isinstance(model, str) else None)
