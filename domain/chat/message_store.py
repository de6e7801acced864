"""Bounded, append-only per-room message log."""
from __future__ import annotations

import asyncio
from collections import deque
from dataclasses import dataclass
from itertools import islice
from typing import Deque, Dict, Iterable, List

from domain.chat.entity import Message
from domain.common.exceptions import MessageNotFoundException, UnknownRoomException


DEFAULT_HISTORY_CAPACITY = 1000


@dataclass
class MessagePage:
    messages: List[Message]
    has_more: bool
    page: int


class MessageStore:
    """Keeps the most recent ``capacity`` messages of each room in insertion order."""

    def __init__(self, rooms: Iterable[str], capacity: int = DEFAULT_HISTORY_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self._capacity = capacity
        # deque(maxlen) drops from the oldest end once an append overflows it
        self._logs: Dict[str, Deque[Message]] = {room: deque(maxlen=capacity) for room in rooms}
        self._locks: Dict[str, asyncio.Lock] = {room: asyncio.Lock() for room in self._logs}

    @property
    def capacity(self) -> int:
        return self._capacity

    def _ensure(self, room: str) -> None:
        if room not in self._logs:
            raise UnknownRoomException(room)

    async def append(self, room: str, message: Message) -> None:
        self._ensure(room)
        async with self._locks[room]:
            self._logs[room].append(message)

    async def count(self, room: str) -> int:
        self._ensure(room)
        async with self._locks[room]:
            return len(self._logs[room])

    async def page(self, room: str, page_index: int, page_size: int) -> MessagePage:
        """Slice ``[page_index * page_size, +page_size)`` of the oldest-first log."""
        if page_index < 0:
            raise ValueError("page_index must be >= 0")
        if page_size <= 0:
            raise ValueError("page_size must be > 0")
        self._ensure(room)
        start = page_index * page_size
        async with self._locks[room]:
            log = self._logs[room]
            total = len(log)
            items = list(islice(log, start, start + page_size)) if start < total else []
        return MessagePage(messages=items, has_more=total > start + page_size, page=page_index)

    async def attach_reaction(self, room: str, message_id: str, symbol: str, display_name: str) -> Message:
        """Add a reactor to a stored message; repeating the same triple is a no-op."""
        self._ensure(room)
        async with self._locks[room]:
            # newest first: reactions overwhelmingly target recent messages
            for message in reversed(self._logs[room]):
                if message.id == message_id:
                    message.add_reaction(symbol, display_name)
                    return message
        raise MessageNotFoundException(message_id, room)
