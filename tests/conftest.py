"""Pytest bootstrap configuration.

Environment overrides are applied before test collection so that
``core.config.settings`` picks them up, and a recording gateway stands in
for the WebSocket transport in coordinator tests.
"""
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Set

import pytest

# Heartbeat pings would interleave with frames asserted in WebSocket tests
os.environ.setdefault("REALTIME_WS_IDLE_PING_INTERVAL_S", "0")
os.environ.setdefault("DEBUG", "false")

from application.services.chat_coordinator import ChatCoordinator  # noqa: E402


@dataclass
class Sent:
    scope: str  # room | session | all | all_except
    target: Optional[str]
    event: str
    payload: Any
    exclude: Optional[str] = None


class RecordingGateway:
    """BroadcastGateway double that records every call."""

    def __init__(self) -> None:
        self.sent: List[Sent] = []
        self.subscriptions: Dict[str, Set[str]] = {}

    async def join_room(self, room: str, session_id: str) -> None:
        self.subscriptions.setdefault(room, set()).add(session_id)

    async def leave_room(self, room: str, session_id: str) -> None:
        self.subscriptions.get(room, set()).discard(session_id)

    async def leave_all(self, session_id: str) -> None:
        for members in self.subscriptions.values():
            members.discard(session_id)

    async def send_to_room(self, room, event, payload, *, exclude=None) -> None:
        self.sent.append(Sent("room", room, event, payload, exclude))

    async def send_to_session(self, session_id, event, payload) -> None:
        self.sent.append(Sent("session", session_id, event, payload))

    async def send_to_all(self, event, payload) -> None:
        self.sent.append(Sent("all", None, event, payload))

    async def send_to_all_except(self, session_id, event, payload) -> None:
        self.sent.append(Sent("all_except", session_id, event, payload))

    def find(self, event: Optional[str] = None, *, scope: Optional[str] = None, target: Optional[str] = None) -> List[Sent]:
        return [
            s for s in self.sent
            if (event is None or s.event == event)
            and (scope is None or s.scope == scope)
            and (target is None or s.target == target)
        ]

    def clear(self) -> None:
        self.sent.clear()


@pytest.fixture
def gateway() -> RecordingGateway:
    return RecordingGateway()


@pytest.fixture
def coordinator(gateway: RecordingGateway) -> ChatCoordinator:
    return ChatCoordinator(
        gateway=gateway,
        rooms=["general", "random", "tech"],
        default_room="general",
        # wide window: rate limit tests must not depend on wall-clock speed
        rate_limit_window_ms=60_000,
        rate_limit_max_messages=5,
    )
