from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from map_console.domain.value_objects.enums import SessionState

if TYPE_CHECKING:
    from map_console.application.ports.peer import DataChannel, PeerConnection


@dataclass(slots=True)
class Session:
    """One realtime connection, pending or live.

    The console moves it through its lifecycle and
    drops the peer/channel references on teardown.
    """

    created_at: datetime
    id: UUID = field(default_factory=uuid4)
    state: SessionState = SessionState.IDLE
    credential: str | None = None
    model: str | None = None
    peer: PeerConnection | None = None
    channel: DataChannel | None = None
    status: str = "idle"
    error: str | None = None

    @property
    def is_live(self) -> bool:
        return self.state in (SessionState.NEGOTIATING, SessionState.ACTIVE)
