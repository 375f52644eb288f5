from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from map_console.domain.value_objects.enums import EventDirection


@dataclass(frozen=True, slots=True)
class LoggedEvent:
    """One entry of the display log: a transmitted or received channel event."""

    direction: EventDirection
    type: str
    event_id: str | None
    payload: dict[str, Any]
    timestamp: datetime
