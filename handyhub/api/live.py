"""WebSocket endpoint for live task and chat events.

After connecting, a client sends ``{"event": "join", "userId": "<own id>"}``
to enter its personal room; nothing is delivered before that. Server events
arrive as ``{"event": <type>, "data": {...}}``.
"""

from __future__ import annotations

import asyncio
import json
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status

from handyhub.auth import get_live_user_id
from handyhub.config import settings
from handyhub.events import connections

logger = logging.getLogger("handyhub.live")

router = APIRouter()


class LiveConnection:
    """Registry handle for one socket (Starlette's WebSocket is unhashable)."""

    def __init__(self, websocket: WebSocket) -> None:
        self.websocket = websocket

    async def send_json(self, data) -> None:
        await self.websocket.send_json(data)


async def _reply(conn: LiveConnection, event: str, **data) -> None:
    await conn.send_json({"event": event, "data": data})


async def _handle_frame(conn: LiveConnection, user_id: str, frame: dict) -> None:
    event = frame.get("event")
    if event == "join":
        room = frame.get("userId")
        if room != user_id:
            await _reply(conn, "error", message="You can only join your own room")
            return
        connections.join(user_id, conn)
        await _reply(conn, "joined", userId=user_id)
    elif event == "leave":
        connections.leave(user_id, conn)
        await _reply(conn, "left", userId=user_id)
    elif event == "ping":
        await _reply(conn, "pong")
    else:
        await _reply(conn, "error", message=f"Unknown event: {event}")


@router.websocket("/v1/live")
async def live(websocket: WebSocket, user_id: str | None = Depends(get_live_user_id)):
    if user_id is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    conn = LiveConnection(websocket)
    logger.info("Live connection opened for %s", user_id)
    try:
        while True:
            try:
                raw = await asyncio.wait_for(
                    websocket.receive_text(), timeout=settings.live_keepalive_seconds
                )
            except TimeoutError:
                await _reply(conn, "keepalive")
                continue
            try:
                frame = json.loads(raw)
            except ValueError:
                await _reply(conn, "error", message="Frames must be JSON objects")
                continue
            if not isinstance(frame, dict):
                await _reply(conn, "error", message="Frames must be JSON objects")
                continue
            await _handle_frame(conn, user_id, frame)
    except WebSocketDisconnect:
        pass
    finally:
        connections.disconnect(conn)
        logger.info("Live connection closed for %s", user_id)
