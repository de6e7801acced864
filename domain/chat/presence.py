"""Presence directory: who is online and under which display name."""
from __future__ import annotations

import asyncio
from typing import Dict, List, Optional

from domain.chat.entity import ChatSession
from domain.common.exceptions import (
    DuplicateDisplayNameException,
    DuplicateSessionException,
    SessionNotFoundException,
)


class PresenceDirectory:
    """Bidirectional session id <-> display name mapping.

    Display names are unique among live sessions; a second session
    claiming a name in use is rejected instead of taking over its
    private-message routing.
    """

    def __init__(self) -> None:
        # insertion order doubles as the online-list order
        self._by_session: Dict[str, ChatSession] = {}
        self._by_name: Dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def register(self, session_id: str, display_name: str, room: str) -> ChatSession:
        async with self._lock:
            if session_id in self._by_session:
                raise DuplicateSessionException(session_id)
            if display_name in self._by_name:
                raise DuplicateDisplayNameException(display_name)
            session = ChatSession(session_id=session_id, display_name=display_name, current_room=room)
            self._by_session[session_id] = session
            self._by_name[display_name] = session_id
            return session

    async def resolve(self, session_id: str) -> str:
        async with self._lock:
            session = self._by_session.get(session_id)
        if session is None:
            raise SessionNotFoundException(session_id=session_id)
        return session.display_name

    async def reverse_resolve(self, display_name: str) -> str:
        async with self._lock:
            session_id = self._by_name.get(display_name)
        if session_id is None:
            raise SessionNotFoundException(display_name=display_name)
        return session_id

    async def get(self, session_id: str) -> Optional[ChatSession]:
        async with self._lock:
            return self._by_session.get(session_id)

    async def set_current_room(self, session_id: str, room: str) -> None:
        async with self._lock:
            session = self._by_session.get(session_id)
            if session is not None:
                session.current_room = room

    async def remove(self, session_id: str) -> Optional[ChatSession]:
        """Drop both directions; idempotent. Returns the removed session, if any."""
        async with self._lock:
            session = self._by_session.pop(session_id, None)
            if session is not None and self._by_name.get(session.display_name) == session_id:
                del self._by_name[session.display_name]
            return session

    async def all_display_names(self) -> List[str]:
        async with self._lock:
            return [s.display_name for s in self._by_session.values()]
