"""WebSocket route for the chat protocol.

One connection is one chat session. Frames are JSON objects
``{"type": <event>, ...fields}`` handed to the ChatEventDispatcher.

- Non-text or non-JSON frames are dispatched as malformed; the loop keeps going.
- Server sends a ``ping`` frame on idle; closes after configurable missed pongs.
- Whatever ends the loop, the connection is dropped and the session disconnected.
"""
from __future__ import annotations

import asyncio
import json
import uuid

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from api.dependencies import get_ws_connections, get_ws_coordinator, get_ws_dispatcher
from api.middleware import bind_ws_context
from core.logging_config import get_logger
from core.config import settings


logger = get_logger(__name__)


router = APIRouter(prefix="/ws", tags=["WebSocket"])


async def _receive_frame(ws: WebSocket, timeout: float | None):
    """Next decoded frame; binary or non-JSON frames decode to None."""
    if timeout:
        message = await asyncio.wait_for(ws.receive(), timeout=timeout)
    else:
        message = await ws.receive()
    if message["type"] == "websocket.disconnect":
        raise WebSocketDisconnect(code=message.get("code", 1000), reason=message.get("reason"))
    raw = message.get("text")
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return None


@router.websocket("/chat")
async def chat_endpoint(ws: WebSocket) -> None:
    await ws.accept()
    session_id = uuid.uuid4().hex
    bind_ws_context(ws, session_id)

    connections = get_ws_connections(ws)
    dispatcher = get_ws_dispatcher(ws)
    chat = get_ws_coordinator(ws)

    await connections.add(session_id, ws)
    try:
        idle_ping_interval = float(settings.REALTIME_WS_IDLE_PING_INTERVAL_S or 0)
        pong_grace = float(settings.REALTIME_WS_PONG_GRACE_S)
        missed_limit = int(settings.REALTIME_WS_MISSED_PING_LIMIT)

        missed = 0
        while True:
            if idle_ping_interval > 0:
                try:
                    frame = await _receive_frame(ws, idle_ping_interval)
                except asyncio.TimeoutError:
                    # Idle: ping through the send queue and wait a short grace for any frame
                    missed += 1
                    await connections.send_to_session(session_id, "ping", None)
                    try:
                        frame = await _receive_frame(ws, pong_grace)
                    except asyncio.TimeoutError:
                        if missed > missed_limit:
                            logger.info("ws_heartbeat_timeout", missed=missed)
                            await ws.close(code=1001)
                            break
                        continue
            else:
                frame = await _receive_frame(ws, None)
            # any inbound frame proves the peer is alive
            missed = 0
            await dispatcher.dispatch(session_id, frame)
    except WebSocketDisconnect:
        logger.info("ws_client_closed")
    except Exception as exc:
        logger.error("ws_error", error=str(exc), exc_info=True)
        try:
            await ws.close(code=1011)
        except Exception as close_exc:  # pragma: no cover - socket already gone
            logger.debug("ws_close_failed", error=str(close_exc))
    finally:
        # socket is gone: stop its sender before the farewell broadcasts
        await connections.remove(session_id)
        await chat.disconnect(session_id)
