"""In-process WebSocket connection manager.

Keeps track of session connections and room subscriptions, and implements
the BroadcastGateway for this process. Each connection has its own bounded
send queue drained by a dedicated task, so a slow socket only ever delays
itself.
"""
from __future__ import annotations

import asyncio
from typing import Any, Dict, Iterable, List, Optional, Set

from fastapi import WebSocket

from application.ports.realtime import Envelope
from core.logging_config import get_logger


logger = get_logger(__name__)

_OVERFLOW_POLICIES = {"drop_oldest", "drop_new", "disconnect"}


class ConnectionManager:
    """Manage per-process WebSocket connections and room subscriptions."""

    def __init__(self, *, send_queue_max: int = 100, overflow_policy: str = "drop_oldest") -> None:
        # session_id -> WebSocket
        self._by_session: Dict[str, WebSocket] = {}
        # room -> set[session_id]
        self._by_room: Dict[str, Set[str]] = {}
        self._lock = asyncio.Lock()
        self._send_queue_max = max(1, int(send_queue_max))
        policy = (overflow_policy or "drop_oldest").lower()
        if policy not in _OVERFLOW_POLICIES:
            logger.warning("ws_send_queue_policy_invalid", policy=policy, fallback="drop_oldest")
            policy = "drop_oldest"
        self._overflow_policy = policy
        # per-connection send queues and sender tasks
        self._send_queues: Dict[str, asyncio.Queue] = {}
        self._sender_tasks: Dict[str, asyncio.Task] = {}

    async def add(self, session_id: str, ws: WebSocket) -> None:
        async with self._lock:
            self._by_session[session_id] = ws
            if session_id not in self._send_queues:
                q: asyncio.Queue = asyncio.Queue(maxsize=self._send_queue_max)
                self._send_queues[session_id] = q
                self._sender_tasks[session_id] = asyncio.create_task(self._sender_loop(session_id, ws, q))
        logger.info("ws_connected", session_id=session_id)

    async def remove(self, session_id: str) -> None:
        async with self._lock:
            self._by_session.pop(session_id, None)
            for members in self._by_room.values():
                members.discard(session_id)
            task = self._sender_tasks.pop(session_id, None)
            if task is not None:
                task.cancel()
            self._send_queues.pop(session_id, None)
        logger.info("ws_disconnected", session_id=session_id)

    def is_connected(self, session_id: str) -> bool:
        return session_id in self._by_session

    async def aclose(self) -> None:
        """Stop every sender task and close the remaining sockets (1001 going away)."""
        async with self._lock:
            sockets = list(self._by_session.items())
            tasks = list(self._sender_tasks.values())
            self._by_session.clear()
            self._by_room.clear()
            self._sender_tasks.clear()
            self._send_queues.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        for session_id, ws in sockets:
            try:
                await ws.close(code=1001)
            except Exception as exc:  # pragma: no cover - socket already gone
                logger.debug("ws_close_failed", session_id=session_id, error=str(exc))
        logger.info("ws_manager_closed", connections=len(sockets))

    # BroadcastGateway
    async def join_room(self, room: str, session_id: str) -> None:
        async with self._lock:
            self._by_room.setdefault(room, set()).add(session_id)
        logger.debug("ws_join_room", room=room, session_id=session_id)

    async def leave_room(self, room: str, session_id: str) -> None:
        async with self._lock:
            members = self._by_room.get(room)
            if members is not None:
                members.discard(session_id)
        logger.debug("ws_leave_room", room=room, session_id=session_id)

    async def leave_all(self, session_id: str) -> None:
        async with self._lock:
            for members in self._by_room.values():
                members.discard(session_id)
        logger.debug("ws_leave_all", session_id=session_id)

    async def send_to_room(self, room: str, event: str, payload: Any, *, exclude: Optional[str] = None) -> None:
        async with self._lock:
            targets = [sid for sid in self._by_room.get(room, set()) if sid != exclude]
        await self._fan_out(targets, event, payload, context={"room": room})

    async def send_to_session(self, session_id: str, event: str, payload: Any) -> None:
        await self._fan_out([session_id], event, payload, context={"session_id": session_id})

    async def send_to_all(self, event: str, payload: Any) -> None:
        async with self._lock:
            targets = list(self._by_session)
        await self._fan_out(targets, event, payload, context={"scope": "all"})

    async def send_to_all_except(self, session_id: str, event: str, payload: Any) -> None:
        async with self._lock:
            targets = [sid for sid in self._by_session if sid != session_id]
        await self._fan_out(targets, event, payload, context={"scope": "all_except"})

    # -------------------- internals --------------------
    async def _fan_out(self, targets: Iterable[str], event: str, payload: Any, context: dict) -> None:
        sids: List[str] = list(targets)
        if not sids:
            return
        frame = Envelope(type=event, data=payload).model_dump(mode="json")
        for sid in sids:
            await self._enqueue(sid, frame, context={**context, "event": event})

    async def _enqueue(self, session_id: str, frame: dict, context: dict) -> None:
        q = self._send_queues.get(session_id)
        if q is None:
            # session vanished between snapshot and delivery
            return
        try:
            q.put_nowait(frame)
            return
        except asyncio.QueueFull:
            pass
        policy = self._overflow_policy
        if policy == "drop_new":
            logger.warning("ws_send_queue_drop_new", **context)
            return
        if policy == "disconnect":
            logger.warning("ws_send_queue_disconnect", **context)
            ws = self._by_session.get(session_id)
            if ws is not None:
                try:
                    await ws.close(code=1013)
                except Exception as exc:  # pragma: no cover - socket already gone
                    logger.debug("ws_close_failed", error=str(exc), **context)
            return
        # default: drop_oldest
        try:
            q.get_nowait()
        except asyncio.QueueEmpty:
            pass
        try:
            q.put_nowait(frame)
        except asyncio.QueueFull:
            logger.warning("ws_send_queue_drop_after_trim", **context)

    async def _sender_loop(self, session_id: str, ws: WebSocket, q: asyncio.Queue) -> None:
        try:
            while True:
                frame = await q.get()
                try:
                    await ws.send_json(frame)
                except Exception as exc:  # pragma: no cover
                    logger.warning("ws_send_failed", session_id=session_id, error=str(exc))
        except asyncio.CancelledError:  # graceful exit
            return
