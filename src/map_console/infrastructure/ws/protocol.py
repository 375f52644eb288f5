"""Console WebSocket envelope models."""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class WsInbound(BaseModel):
    """UI → console."""

    type: str  # message.send | response.create | snapshot.capture | view.update | ping
    data: dict[str, Any] = {}


class WsOutbound(BaseModel):
    """Console → UI."""

    type: str  # status.changed | transcript.updated | event.logged | snapshot.captured | error | pong
    data: dict[str, Any] = {}
