from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True, slots=True)
class EphemeralCredential:
    value: str
    model: str | None = None


class CredentialProvider(Protocol):
    async def fetch(self) -> EphemeralCredential: ...
