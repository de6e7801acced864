"""Room registry with per-room membership sets."""
from __future__ import annotations

import asyncio
from contextlib import AsyncExitStack
from typing import Dict, Iterable, List, Optional

from domain.common.exceptions import UnknownRoomException


class RoomRegistry:
    """Fixed set of rooms, each guarded by its own lock.

    Members are kept in join order so the ``roomUpdate`` lists are stable.
    """

    def __init__(self, rooms: Iterable[str]) -> None:
        self._members: Dict[str, Dict[str, None]] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        for room in rooms:
            if room in self._members:
                continue
            self._members[room] = {}
            self._locks[room] = asyncio.Lock()
        if not self._members:
            raise ValueError("RoomRegistry needs at least one room")

    @property
    def rooms(self) -> List[str]:
        return list(self._members)

    def has_room(self, room: Optional[str]) -> bool:
        return room is not None and room in self._members

    def _ensure(self, room: str) -> None:
        if room not in self._members:
            raise UnknownRoomException(room)

    async def add_member(self, room: str, display_name: str) -> None:
        self._ensure(room)
        async with self._locks[room]:
            self._members[room][display_name] = None

    async def remove_member(self, room: str, display_name: str) -> bool:
        """Returns True when the name was actually present."""
        if room not in self._members:
            return False
        async with self._locks[room]:
            members = self._members[room]
            if display_name not in members:
                return False
            del members[display_name]
            return True

    async def members_of(self, room: str) -> List[str]:
        self._ensure(room)
        async with self._locks[room]:
            return list(self._members[room])

    async def transition(self, display_name: str, from_room: Optional[str], to_room: str) -> None:
        """Move ``display_name`` from one room to another as a single step.

        ``to_room`` is validated before anything is touched. An unknown or
        empty ``from_room`` only skips the removal.
        """
        self._ensure(to_room)
        involved = {to_room}
        if from_room and from_room in self._members:
            involved.add(from_room)
        async with AsyncExitStack() as stack:
            # fixed acquisition order so two opposite moves can't deadlock
            for room in sorted(involved):
                await stack.enter_async_context(self._locks[room])
            if from_room in involved and from_room != to_room:
                self._members[from_room].pop(display_name, None)
            self._members[to_room][display_name] = None

    async def remove_everywhere(self, display_name: str) -> List[str]:
        """Remove the name from every room; returns the rooms it was in."""
        affected: List[str] = []
        for room in self._members:
            if await self.remove_member(room, display_name):
                affected.append(room)
        return affected
