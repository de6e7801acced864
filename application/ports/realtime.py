"""
Realtime port and message DTOs (contracts-first).

This module defines the boundary envelope and the BroadcastGateway
protocol so the chat coordinator stays decoupled from the concrete
connection handling (infrastructure).
"""
from __future__ import annotations

from typing import Any, Optional, Protocol
from pydantic import BaseModel, Field
from datetime import datetime, timezone


def _utc_now_z() -> str:
    ts = datetime.now(timezone.utc)
    s = ts.isoformat()
    return s.replace("+00:00", "Z")


class Envelope(BaseModel):
    """Unified WS frame passed from server to client.

    Fields:
      - type: event name (message/userJoined/userList/roomList/roomUpdate/...)
      - data: event payload; shape depends on ``type`` (object, list or string)
      - ts: server-generated UTC timestamp (ISO8601 with Z)
    """

    type: str
    data: Any = None
    ts: str = Field(default_factory=_utc_now_z)


class BroadcastGateway(Protocol):
    """Delivery primitives the coordinator relies on.

    Implementations must never raise for a vanished destination and must
    not let one slow destination hold up the others.
    """

    async def join_room(self, room: str, session_id: str) -> None: ...

    async def leave_room(self, room: str, session_id: str) -> None: ...

    async def leave_all(self, session_id: str) -> None: ...

    async def send_to_room(
        self, room: str, event: str, payload: Any, *, exclude: Optional[str] = None
    ) -> None: ...

    async def send_to_session(self, session_id: str, event: str, payload: Any) -> None: ...

    async def send_to_all(self, event: str, payload: Any) -> None: ...

    async def send_to_all_except(self, session_id: str, event: str, payload: Any) -> None: ...


__all__ = ["Envelope", "BroadcastGateway"]
