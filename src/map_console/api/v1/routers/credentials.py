from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from map_console.api.deps import IssuerDep
from map_console.config import settings

router = APIRouter(tags=["credentials"])


@router.get("/session")
@router.get("/token")
async def issue_session(issuer: IssuerDep) -> dict[str, Any]:
    """Trade the server-held API key for a short-lived realtime session."""
    return await issuer.create_session(
        settings.OPENAI_API_KEY,
        settings.OPENAI_REALTIME_MODEL,
        settings.OPENAI_VOICE,
    )
