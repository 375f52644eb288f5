from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from map_console.domain.value_objects.enums import Role


@dataclass(frozen=True, slots=True)
class TranscriptEntry:
    id: UUID
    role: Role
    text: str
    created_at: datetime
    preview: bool = False
