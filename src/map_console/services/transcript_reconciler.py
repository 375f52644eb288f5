"""Fold the inbound realtime event stream into a chat transcript."""
from __future__ import annotations

import dataclasses
import logging
import uuid
from typing import Callable

from map_console.application.ports.clock import Clock
from map_console.domain.entities.transcript import TranscriptEntry
from map_console.domain.value_objects.enums import ReconcilerState, Role
from map_console.infrastructure.realtime.protocol import InboundEvent, first_input_text

logger = logging.getLogger(__name__)

RESPONSE_CREATED = frozenset({"response.created"})
RESPONSE_DELTA = frozenset({
    "response.output_text.delta",
    "response.text.delta",
    "response.audio_transcript.delta",
    "response.output_audio_transcript.delta",
})
RESPONSE_COMPLETED = frozenset({"response.completed", "response.done"})
RESPONSE_ERROR = frozenset({"response.error"})
SERVER_ERROR = frozenset({"error"})
ITEM_CREATED = frozenset({"conversation.item.created"})

TranscriptListener = Callable[[list[TranscriptEntry]], None]


class TranscriptReconciler:
    """Streaming assistant text plus deduplicated user lines.

    idle/committed --response.created--> streaming
    streaming --delta--> streaming (preview entry updated in place)
    streaming --completed--> committed (non-empty) | idle (empty)
    any --error--> idle
    """

    def __init__(self, clock: Clock) -> None:
        self._clock = clock
        self.state = ReconcilerState.IDLE
        self.buffer = ""
        self.entries: list[TranscriptEntry] = []
        self.last_user_text: str | None = None
        self.last_error: object = None
        self._listeners: list[TranscriptListener] = []

    @property
    def preview(self) -> TranscriptEntry | None:
        for entry in self.entries:
            if entry.preview:
                return entry
        return None

    def on_change(self, listener: TranscriptListener) -> None:
        self._listeners.append(listener)

    def add_local_user_message(self, text: str) -> TranscriptEntry:
        """Render a user line optimistically, before the server echoes it."""
        entry = self._append(Role.USER, text)
        self._changed()
        return entry

    def handle(self, event: InboundEvent) -> None:
        if event.type in RESPONSE_CREATED:
            self._start_streaming()
        elif event.type in RESPONSE_DELTA:
            self._apply_delta(event.delta or "")
        elif event.type in RESPONSE_COMPLETED:
            self._commit()
        elif event.type in RESPONSE_ERROR:
            self._fail(event.error)
        elif event.type in SERVER_ERROR:
            # not tied to the streaming response; keep the preview
            logger.warning("Realtime server error: %s", event.error)
            self.last_error = event.error
            return
        elif event.type in ITEM_CREATED:
            self._user_item(event.item)
        else:
            return
        self._changed()

    def _start_streaming(self) -> None:
        self._drop_preview()
        self.buffer = ""
        self.state = ReconcilerState.STREAMING

    def _apply_delta(self, delta: str) -> None:
        if self.state != ReconcilerState.STREAMING:
            logger.debug("Delta without response.created; starting a new stream")
            self._start_streaming()
        self.buffer += delta
        if not self.buffer:
            return
        index = self._preview_index()
        if index is None:
            self._append(Role.ASSISTANT, self.buffer, preview=True)
        else:
            self.entries[index] = dataclasses.replace(self.entries[index], text=self.buffer)

    def _commit(self) -> None:
        text = self.buffer.strip()
        index = self._preview_index()
        self.buffer = ""
        if not text:
            self._drop_preview()
            self.state = ReconcilerState.IDLE
            return
        if index is None:
            self._append(Role.ASSISTANT, text)
        else:
            self.entries[index] = dataclasses.replace(self.entries[index], text=text, preview=False)
        self.state = ReconcilerState.COMMITTED

    def _fail(self, error: object) -> None:
        logger.error("Assistant error: %s", error)
        self.last_error = error
        self.buffer = ""
        self._drop_preview()
        self.state = ReconcilerState.IDLE

    def _user_item(self, item: dict | None) -> None:
        if not item or item.get("type") != "message" or item.get("role") != Role.USER:
            return
        text = first_input_text(item)
        if text and text != self.last_user_text:
            self._append(Role.USER, text)

    def _append(self, role: Role, text: str, *, preview: bool = False) -> TranscriptEntry:
        entry = TranscriptEntry(
            id=uuid.uuid4(),
            role=role,
            text=text,
            created_at=self._clock.now(),
            preview=preview,
        )
        self.entries.append(entry)
        if role == Role.USER:
            self.last_user_text = text
        return entry

    def _preview_index(self) -> int | None:
        for index, entry in enumerate(self.entries):
            if entry.preview:
                return index
        return None

    def _drop_preview(self) -> None:
        self.entries = [entry for entry in self.entries if not entry.preview]

    def _changed(self) -> None:
        snapshot = list(self.entries)
        for listener in self._listeners:
            listener(snapshot)
