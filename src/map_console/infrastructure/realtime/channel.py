"""Coordinator for the realtime `oai-events` data channel."""
from __future__ import annotations

import json
import logging
from collections import deque
from typing import Any, Callable
from uuid import uuid4

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from map_console.application.exceptions import ChannelStateError, ParseError
from map_console.application.ports.clock import Clock
from map_console.application.ports.peer import DataChannel
from map_console.domain.entities.logged_event import LoggedEvent
from map_console.domain.value_objects.enums import ChannelReadyState, EventDirection
from map_console.infrastructure.realtime.protocol import InboundEvent, OutboundEvent

logger = logging.getLogger(__name__)

InboundHandler = Callable[[InboundEvent], None]
LogListener = Callable[[LoggedEvent], None]


def parse_event(raw: str | bytes) -> InboundEvent:
    try:
        return InboundEvent.model_validate_json(raw)
    except PydanticValidationError as exc:
        raise ParseError(f"invalid realtime event: {exc.error_count()} error(s)") from exc


class EventChannelCoordinator:
    """Owns one data channel: queues until open, then sends in call order.

    Every transmitted and received event lands in `event_log`,
    most recent first.
    """

    def __init__(
        self,
        clock: Clock,
        *,
        log_limit: int = 500,
        warn_threshold: int = 100,
    ) -> None:
        self._clock = clock
        self._warn_threshold = warn_threshold
        self._channel: DataChannel | None = None
        self._pending: deque[dict[str, Any]] = deque()
        self._handlers: list[InboundHandler] = []
        self._log_listeners: list[LogListener] = []
        self._open_listeners: list[Callable[[], None]] = []
        self._close_listeners: list[Callable[[], None]] = []
        self._opened = False
        self._closed = False
        self._warned = False
        self.event_log: deque[LoggedEvent] = deque(maxlen=log_limit)

    @property
    def channel(self) -> DataChannel | None:
        return self._channel

    @property
    def is_open(self) -> bool:
        return (
            not self._closed
            and self._channel is not None
            and self._channel.ready_state == ChannelReadyState.OPEN
        )

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def on_message(self, handler: InboundHandler) -> None:
        self._handlers.append(handler)

    def on_open(self, callback: Callable[[], None]) -> None:
        self._open_listeners.append(callback)

    def on_logged(self, listener: LogListener) -> None:
        self._log_listeners.append(listener)

    def on_remote_close(self, callback: Callable[[], None]) -> None:
        self._close_listeners.append(callback)

    def attach(self, channel: DataChannel) -> None:
        if self._closed:
            raise ChannelStateError("Coordinator is closed; start a new session.")
        if self._channel is not None:
            raise ChannelStateError("A data channel is already attached.")
        self._channel = channel
        channel.on_open(self._handle_open)
        channel.on_message(self._handle_message)
        channel.on_close(self._handle_close)
        if channel.ready_state == ChannelReadyState.OPEN:
            self._handle_open()

    def send(self, event: OutboundEvent | dict[str, Any]) -> str:
        """Transmit now if the channel is open, otherwise queue. Returns the event id."""
        if self._closed:
            logger.warning("Dropped client event: data channel is closed")
            raise ChannelStateError("Data channel is closed.")

        if isinstance(event, BaseModel):
            payload = event.model_dump(exclude_none=True)
        else:
            payload = dict(event)
        if not payload.get("event_id"):
            payload["event_id"] = uuid4().hex

        self._pending.append(payload)
        if self._opened and self.is_open:
            self._drain()
        if len(self._pending) > self._warn_threshold and not self._warned:
            self._warned = True
            logger.warning("Pending event queue has %d undelivered entries", len(self._pending))
        return payload["event_id"]

    def close(self) -> None:
        """Close the channel and drop anything still queued. Idempotent."""
        if self._closed:
            return
        self._closed = True
        if self._pending:
            logger.warning("Discarding %d queued event(s) on close", len(self._pending))
            self._pending.clear()
        channel, self._channel = self._channel, None
        if channel is not None:
            try:
                channel.close()
            except Exception:
                logger.exception("Error closing data channel")

    def _transmit(self, payload: dict[str, Any]) -> None:
        assert self._channel is not None
        self._channel.send(json.dumps(payload))
        self._record(EventDirection.CLIENT, payload)

    def _drain(self) -> int:
        """Transmit queued events in order; a failed send stays at the head for the next drain."""
        sent = 0
        while self._pending and self.is_open:
            try:
                self._transmit(self._pending[0])
            except Exception:
                logger.exception("Send failed; %d event(s) left queued", len(self._pending))
                break
            self._pending.popleft()
            sent += 1
        return sent

    def _handle_open(self) -> None:
        if self._opened or self._closed:
            return
        self._opened = True
        flushed = self._drain()
        if flushed:
            logger.info("Flushed %d queued event(s) on channel open", flushed)
        for callback in self._open_listeners:
            callback()

    def _handle_message(self, raw: str | bytes) -> None:
        try:
            event = parse_event(raw)
        except ParseError as exc:
            logger.warning("Dropping malformed channel message: %s", exc.detail)
            return

        self._record(EventDirection.SERVER, event.model_dump(exclude_none=True))
        for handler in self._handlers:
            try:
                handler(event)
            except Exception:
                logger.exception("Error handling realtime event %s", event.type)

    def _handle_close(self) -> None:
        if self._closed:
            return
        logger.info("Data channel closed by remote")
        self._closed = True
        self._channel = None
        if self._pending:
            logger.warning("Discarding %d queued event(s) on remote close", len(self._pending))
            self._pending.clear()
        for callback in self._close_listeners:
            callback()

    def _record(self, direction: EventDirection, payload: dict[str, Any]) -> None:
        entry = LoggedEvent(
            direction=direction,
            type=str(payload.get("type", "unknown")),
            event_id=payload.get("event_id"),
            payload=payload,
            timestamp=self._clock.now(),
        )
        self.event_log.appendleft(entry)
        for listener in self._log_listeners:
            listener(entry)
