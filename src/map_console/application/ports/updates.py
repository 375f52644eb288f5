from __future__ import annotations

from typing import Any, Protocol


class UpdatePublisher(Protocol):
    """Fan-out of console changes to connected UIs. Must not block."""

    def publish(self, event_type: str, data: dict[str, Any]) -> None: ...
