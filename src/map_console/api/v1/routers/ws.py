from __future__ import annotations

import asyncio
import logging
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError as PydanticValidationError

from map_console.api.v1.schemas.console import ViewUpdateRequest
from map_console.application.exceptions import AppError
from map_console.infrastructure.ws.manager import ConnectionManager
from map_console.infrastructure.ws.protocol import WsInbound, WsOutbound
from map_console.services.console_service import RealtimeConsole

logger = logging.getLogger(__name__)
router = APIRouter(tags=["websocket"])


@router.websocket("/ws/console")
async def ws_console(websocket: WebSocket) -> None:
    manager: ConnectionManager = websocket.app.state.manager
    console: RealtimeConsole = websocket.app.state.console

    queue = await manager.connect(websocket)
    await websocket.send_text(WsOutbound(type="state", data=console.state()).model_dump_json())
    pump_task = asyncio.create_task(manager.pump(websocket, queue), name="ws-console-pump")
    try:
        await _read_loop(websocket, queue, console)
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("WS console error")
    finally:
        pump_task.cancel()
        await asyncio.gather(pump_task, return_exceptions=True)
        manager.disconnect(websocket)


def _reply(queue: asyncio.Queue[str], event_type: str, data: dict[str, Any]) -> None:
    try:
        queue.put_nowait(WsOutbound(type=event_type, data=data).model_dump_json())
    except asyncio.QueueFull:
        logger.warning("Dropping %s reply for a slow UI connection", event_type)


async def _read_loop(ws: WebSocket, queue: asyncio.Queue[str], console: RealtimeConsole) -> None:
    while True:
        raw = await ws.receive_text()
        try:
            msg = WsInbound.model_validate_json(raw)
        except PydanticValidationError:
            _reply(queue, "error", {"code": "invalid_payload"})
            continue

        try:
            await _dispatch(msg, queue, console)
        except PydanticValidationError as exc:
            _reply(queue, "error", {"code": "invalid_data", "detail": str(exc)})
        except AppError as exc:
            _reply(queue, "error", {"code": type(exc).__name__, "detail": exc.detail})


async def _dispatch(msg: WsInbound, queue: asyncio.Queue[str], console: RealtimeConsole) -> None:
    if msg.type == "ping":
        _reply(queue, "pong", {})

    elif msg.type == "message.send":
        event_ids = console.send_text_message(str(msg.data.get("text") or ""))
        _reply(queue, "message.sent", {"event_ids": event_ids})

    elif msg.type == "response.create":
        _reply(queue, "message.sent", {"event_ids": [console.request_response()]})

    elif msg.type == "snapshot.capture":
        snapshot = await console.capture_snapshot()
        if snapshot is None:
            _reply(queue, "snapshot.unchanged", {})

    elif msg.type == "view.update":
        console.update_view(ViewUpdateRequest.model_validate(msg.data).to_view())

    else:
        _reply(queue, "error", {"code": "unknown_type", "type": msg.type})
