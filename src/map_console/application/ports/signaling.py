from __future__ import annotations

from typing import Protocol


class SignalingClient(Protocol):
    async def exchange(self, offer_sdp: str, credential: str, model: str) -> str:
        """POST the local offer and return the remote answer SDP."""
        ...
