"""Chat domain entities: sessions and room messages."""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional


def utc_now_iso() -> str:
    """Current UTC time as ISO8601 with a ``Z`` suffix."""
    s = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
    return s.replace("+00:00", "Z")


def new_message_id() -> str:
    # Globally unique across rooms so reactions can never hit the wrong message
    return uuid.uuid4().hex


@dataclass
class ChatSession:
    """One live connection that has joined under a display name."""

    session_id: str
    display_name: str
    current_room: str


@dataclass
class Message:
    """A room message; ``author`` is None for system notices."""

    id: str
    room: str
    author: Optional[str]
    text: str
    timestamp: str = field(default_factory=utc_now_iso)
    # symbol -> reactors, in first-reaction order, each reactor at most once
    reactions: dict[str, list[str]] = field(default_factory=dict)
    is_system: bool = False

    @classmethod
    def user_message(cls, room: str, author: str, text: str) -> "Message":
        return cls(id=new_message_id(), room=room, author=author, text=text.strip())

    @classmethod
    def system_notice(cls, room: str, text: str) -> "Message":
        return cls(id=new_message_id(), room=room, author=None, text=text, is_system=True)

    def add_reaction(self, symbol: str, display_name: str) -> bool:
        """Record ``display_name`` under ``symbol``; returns False if already present."""
        reactors = self.reactions.setdefault(symbol, [])
        if display_name in reactors:
            return False
        reactors.append(display_name)
        return True

    def to_payload(self) -> dict[str, Any]:
        """Wire shape of the ``message`` event."""
        return {
            "id": self.id,
            "room": self.room,
            "username": self.author,
            "text": self.text,
            "timestamp": self.timestamp,
            "reactions": {symbol: list(names) for symbol, names in self.reactions.items()},
            "system": self.is_system,
        }
