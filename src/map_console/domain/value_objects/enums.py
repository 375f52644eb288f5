from __future__ import annotations

from enum import StrEnum


class SessionState(StrEnum):
    IDLE = "idle"
    NEGOTIATING = "negotiating"
    ACTIVE = "active"
    CLOSED = "closed"
    ERROR = "error"


class Role(StrEnum):
    USER = "user"
    ASSISTANT = "assistant"


class ReconcilerState(StrEnum):
    IDLE = "idle"
    STREAMING = "streaming"
    COMMITTED = "committed"


class CaptureStatus(StrEnum):
    DISABLED = "disabled"
    IDLE = "idle"
    CAPTURING = "capturing"
    PAUSED = "paused"
    ERROR = "error"


class CaptureStrategy(StrEnum):
    INTERVAL = "interval"
    IDLE = "idle"


class EventDirection(StrEnum):
    CLIENT = "client"
    SERVER = "server"


class ChannelReadyState(StrEnum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"
