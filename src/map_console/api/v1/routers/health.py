from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from map_console.config import settings

router = APIRouter(tags=["health"])


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/readyz")
async def readyz() -> JSONResponse:
    errors: list[str] = []
    if not settings.OPENAI_API_KEY:
        errors.append("OPENAI_API_KEY is not set")

    if errors:
        return JSONResponse(
            status_code=503,
            content={"status": "unavailable", "errors": errors},
        )
    return JSONResponse(
        content={"status": "ready", "snapshots_enabled": settings.snapshots_enabled},
    )
