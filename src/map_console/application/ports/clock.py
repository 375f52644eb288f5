from __future__ import annotations

from datetime import datetime, timezone
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Default wall-clock implementation."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


def display_time(ts: datetime) -> str:
    """Local wall-clock label used in the event log and snapshot summaries."""
    return ts.astimezone().strftime("%H:%M:%S")
