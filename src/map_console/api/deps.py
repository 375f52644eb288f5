"""FastAPI dependency injection helpers."""
from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from map_console.infrastructure.openai.session_issuer import RealtimeSessionIssuer
from map_console.services.console_service import RealtimeConsole


def get_console(request: Request) -> RealtimeConsole:
    return request.app.state.console


ConsoleDep = Annotated[RealtimeConsole, Depends(get_console)]


def get_issuer(request: Request) -> RealtimeSessionIssuer:
    return request.app.state.issuer


IssuerDep = Annotated[RealtimeSessionIssuer, Depends(get_issuer)]
