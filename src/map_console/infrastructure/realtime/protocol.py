"""Realtime data-channel event models and builders."""
from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from map_console.application.ports.clock import display_time
from map_console.domain.entities.snapshot import Snapshot

DATA_CHANNEL_LABEL = "oai-events"


class ContentPart(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: Literal["input_text", "input_image"]
    text: str | None = None
    image_url: str | None = None


class MessageItem(BaseModel):
    type: Literal["message"] = "message"
    role: str
    content: list[ContentPart]
    metadata: dict[str, Any] | None = None


class ConversationItemCreate(BaseModel):
    """Client → model: append an item to the conversation."""

    type: Literal["conversation.item.create"] = "conversation.item.create"
    event_id: str | None = None
    item: MessageItem


class ResponseCreate(BaseModel):
    """Client → model: ask for a response now."""

    type: Literal["response.create"] = "response.create"
    event_id: str | None = None


OutboundEvent = ConversationItemCreate | ResponseCreate


class InboundEvent(BaseModel):
    """Model → client. Only `type` is required; the rest depends on it."""

    model_config = ConfigDict(extra="allow")

    type: str = Field(min_length=1)
    event_id: str | None = None
    delta: str | None = None
    item: dict[str, Any] | None = None
    error: Any = None


def text_message(text: str, role: str = "user") -> ConversationItemCreate:
    return ConversationItemCreate(
        item=MessageItem(role=role, content=[ContentPart(type="input_text", text=text)]),
    )


def response_request() -> ResponseCreate:
    return ResponseCreate()


def snapshot_summary(snapshot: Snapshot) -> str:
    return (
        f"Latest map snapshot captured at {display_time(snapshot.captured_at)} "
        f"(center {snapshot.center.label()} | zoom {snapshot.zoom})."
    )


def snapshot_message(snapshot: Snapshot) -> ConversationItemCreate:
    """Text summary plus the image itself, tagged so the model knows the source."""
    return ConversationItemCreate(
        item=MessageItem(
            role="user",
            metadata={
                "source": "map_snapshot",
                "captured_at": snapshot.captured_at.isoformat(),
                "center": {"lat": snapshot.center.lat, "lng": snapshot.center.lng},
                "zoom": snapshot.zoom,
            },
            content=[
                ContentPart(type="input_text", text=snapshot_summary(snapshot)),
                ContentPart(type="input_image", image_url=snapshot.data_url),
            ],
        ),
    )


def first_input_text(item: dict[str, Any] | None) -> str | None:
    """Text of the first `input_text` part of a message item, if any."""
    if not item:
        return None
    for part in item.get("content") or []:
        if isinstance(part, dict) and part.get("type") == "input_text":
            return part.get("text") or None
    return None
