"""In-process fan-out of console updates to UI WebSockets."""
from __future__ import annotations

import asyncio
import logging
from typing import Any

from fastapi import WebSocket

from map_console.infrastructure.ws.protocol import WsOutbound

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Tracks UI connections; each one drains its own bounded outbound queue."""

    def __init__(self, queue_size: int = 256) -> None:
        self._queue_size = queue_size
        self._queues: dict[WebSocket, asyncio.Queue[str]] = {}

    @property
    def connection_count(self) -> int:
        return len(self._queues)

    async def connect(self, ws: WebSocket) -> asyncio.Queue[str]:
        await ws.accept()
        queue: asyncio.Queue[str] = asyncio.Queue(maxsize=self._queue_size)
        self._queues[ws] = queue
        logger.debug("WS connected (total=%d)", len(self._queues))
        return queue

    def disconnect(self, ws: WebSocket) -> None:
        self._queues.pop(ws, None)
        logger.debug("WS disconnected (total=%d)", len(self._queues))

    def publish(self, event_type: str, data: dict[str, Any]) -> None:
        """Queue an update for every connection without awaiting any of them."""
        if not self._queues:
            return
        raw = WsOutbound(type=event_type, data=data).model_dump_json()
        for queue in self._queues.values():
            try:
                queue.put_nowait(raw)
            except asyncio.QueueFull:
                logger.warning("Dropping %s update for a slow UI connection", event_type)

    async def pump(self, ws: WebSocket, queue: asyncio.Queue[str]) -> None:
        """Forward queued updates to one socket until cancelled."""
        while True:
            raw = await queue.get()
            await ws.send_text(raw)
