"""Application service orchestrating chat rooms, presence and messages.

The coordinator is the only mutator of chat state. Each use-case validates
its input, updates the domain components, then tells the BroadcastGateway
who should hear about it. Errors are raised as ``BusinessException``
subclasses and reported to the originating session by the caller.
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from application.ports.realtime import BroadcastGateway
from core.config import ChatSettings
from core.logging_config import get_logger
from domain.chat.entity import ChatSession, Message, utc_now_iso
from domain.chat.message_store import DEFAULT_HISTORY_CAPACITY, MessageStore
from domain.chat.presence import PresenceDirectory
from domain.chat.rate_limiter import RateLimiter
from domain.chat.rooms import RoomRegistry
from domain.common.exceptions import (
    InvalidInputException,
    InvalidMessageException,
    InvalidNameException,
    InvalidReactionException,
    RateLimitedException,
    RecipientOfflineException,
    SessionNotFoundException,
    UnauthenticatedException,
    UnknownRoomException,
)


logger = get_logger(__name__)


class ChatCoordinator:
    def __init__(
        self,
        *,
        gateway: BroadcastGateway,
        rooms: Iterable[str],
        default_room: str,
        history_capacity: int = DEFAULT_HISTORY_CAPACITY,
        rate_limit_window_ms: int = 1000,
        rate_limit_max_messages: int = 5,
        typing_scope: str = "global",
    ) -> None:
        self._gateway = gateway
        self._rooms = RoomRegistry(rooms)
        if not self._rooms.has_room(default_room):
            raise ValueError(f"default room '{default_room}' is not registered")
        self._default_room = default_room
        self._presence = PresenceDirectory()
        self._messages = MessageStore(self._rooms.rooms, capacity=history_capacity)
        self._limiter = RateLimiter(window_ms=rate_limit_window_ms, max_per_window=rate_limit_max_messages)
        self._typing_scope = typing_scope

    @classmethod
    def from_settings(cls, gateway: BroadcastGateway, chat: ChatSettings) -> "ChatCoordinator":
        return cls(
            gateway=gateway,
            rooms=chat.rooms,
            default_room=chat.default_room,
            history_capacity=chat.history_capacity,
            rate_limit_window_ms=chat.rate_limit_window_ms,
            rate_limit_max_messages=chat.rate_limit_max_messages,
            typing_scope=chat.typing_scope,
        )

    # Read-only access for the API layer and tests
    @property
    def default_room(self) -> str:
        return self._default_room

    @property
    def presence(self) -> PresenceDirectory:
        return self._presence

    @property
    def rooms(self) -> RoomRegistry:
        return self._rooms

    @property
    def messages(self) -> MessageStore:
        return self._messages

    @property
    def rate_limiter(self) -> RateLimiter:
        return self._limiter

    # Public API (use-cases)
    async def join(self, session_id: str, display_name: Optional[str]) -> ChatSession:
        """Register a session under ``display_name`` and place it in the default room."""
        name = display_name.strip() if isinstance(display_name, str) else ""
        if not name:
            raise InvalidNameException()
        room = self._default_room
        session = await self._presence.register(session_id, name, room)
        await self._rooms.add_member(room, name)
        await self._gateway.join_room(room, session_id)

        await self._gateway.send_to_all("userJoined", f"{name} has joined")
        await self._gateway.send_to_all("userList", await self._presence.all_display_names())
        await self._gateway.send_to_session(
            session_id,
            "roomList",
            {
                "rooms": self._rooms.rooms,
                "current": room,
                "usersInRoom": await self._rooms.members_of(room),
            },
        )
        logger.info("chat_user_joined", session_id=session_id, username=name, room=room)
        return session

    async def send_message(self, session_id: str, room: Optional[str], text: Any) -> Message:
        session = await self._require_session(session_id)
        if not await self._limiter.attempt(session_id):
            retry_after = await self._limiter.retry_after_ms(session_id)
            logger.warning("chat_message_rate_limited", session_id=session_id, username=session.display_name)
            raise RateLimitedException(retry_after_ms=retry_after)
        if not isinstance(text, str) or not text.strip():
            raise InvalidMessageException()
        room = room or self._default_room
        if not self._rooms.has_room(room):
            raise UnknownRoomException(room)

        message = Message.user_message(room, session.display_name, text)
        await self._messages.append(room, message)
        await self._gateway.send_to_room(room, "message", message.to_payload())
        logger.debug("chat_message_sent", room=room, message_id=message.id, username=session.display_name)
        return message

    async def react(self, session_id: str, message_id: Optional[str], symbol: Optional[str], room: Optional[str]) -> Message:
        session = await self._require_session(session_id)
        if not message_id or not symbol or not room:
            raise InvalidReactionException()
        if not self._rooms.has_room(room):
            raise UnknownRoomException(room)
        # persisted before broadcast so history readers see the same state
        message = await self._messages.attach_reaction(room, message_id, symbol, session.display_name)
        await self._gateway.send_to_room(
            room,
            "messageReaction",
            {"messageId": message_id, "reaction": symbol, "username": session.display_name, "room": room},
        )
        return message

    async def switch_room(self, session_id: str, new_room: Optional[str], old_room: Optional[str] = None) -> bool:
        """Move the session to ``new_room``; returns False when nothing changed.

        The session's tracked room is authoritative. ``old_room`` as reported
        by the client is only compared against it to log a stale view.
        """
        session = await self._require_session(session_id)
        current = session.current_room
        if not self._rooms.has_room(new_room) or new_room == current:
            return False
        if old_room and old_room != current:
            logger.warning(
                "chat_switch_room_stale_old_room",
                session_id=session_id,
                reported=old_room,
                tracked=current,
            )
        name = session.display_name

        await self._rooms.transition(name, current, new_room)
        await self._presence.set_current_room(session_id, new_room)

        # Leaver is unsubscribed first so only the remaining members see the notice
        await self._gateway.leave_room(current, session_id)
        await self._post_system_notice(current, f"{name} left")

        await self._gateway.join_room(new_room, session_id)
        await self._post_system_notice(new_room, f"{name} joined")
        await self._gateway.send_to_room(
            new_room,
            "roomUpdate",
            {"room": new_room, "users": await self._rooms.members_of(new_room)},
        )
        logger.info("chat_room_switched", session_id=session_id, username=name, from_room=current, to_room=new_room)
        return True

    async def set_typing(self, session_id: str, is_typing: bool) -> None:
        session = await self._require_session(session_id)
        payload = {"username": session.display_name, "typing": bool(is_typing)}
        if self._typing_scope == "room":
            await self._gateway.send_to_room(session.current_room, "typing", payload, exclude=session_id)
        else:
            await self._gateway.send_to_all_except(session_id, "typing", payload)

    async def send_private_message(
        self,
        from_session_id: str,
        to_display_name: Optional[str],
        text: Any,
        conversation_key: Optional[str],
    ) -> Dict[str, Any]:
        session = await self._require_session(from_session_id)
        if not to_display_name or not conversation_key or not isinstance(text, str) or not text.strip():
            raise InvalidMessageException("Invalid private message", field=None)
        try:
            to_session_id = await self._presence.reverse_resolve(to_display_name)
        except SessionNotFoundException:
            raise RecipientOfflineException(to_display_name) from None

        payload = {
            "room": conversation_key,
            "from": session.display_name,
            "text": text,
            "timestamp": utc_now_iso(),
        }
        await self._gateway.send_to_session(to_session_id, "privateMessage", payload)
        if to_session_id != from_session_id:
            await self._gateway.send_to_session(from_session_id, "privateMessage", payload)
        return payload

    async def disconnect(self, session_id: str) -> bool:
        """Terminal transition; a second call (or a never-joined session) is a no-op."""
        session = await self._presence.remove(session_id)
        await self._limiter.release(session_id)
        if session is None:
            return False
        name = session.display_name

        affected = await self._rooms.remove_everywhere(name)
        await self._gateway.leave_all(session_id)
        for room in affected:
            await self._gateway.send_to_room(
                room, "roomUpdate", {"room": room, "users": await self._rooms.members_of(room)}
            )

        await self._gateway.send_to_all("userLeft", f"{name} left")
        await self._gateway.send_to_all("userList", await self._presence.all_display_names())
        logger.info("chat_user_left", session_id=session_id, username=name, rooms=affected)
        return True

    # Read side
    def list_rooms(self) -> List[Dict[str, str]]:
        return [{"id": room, "name": room[:1].upper() + room[1:]} for room in self._rooms.rooms]

    async def read_page(self, room: str, page_index: int, page_size: int) -> Dict[str, Any]:
        if page_index < 0:
            raise InvalidInputException("page must be >= 0", field="page")
        if page_size <= 0:
            raise InvalidInputException("limit must be > 0", field="limit")
        result = await self._messages.page(room, page_index, page_size)
        return {
            "messages": [m.to_payload() for m in result.messages],
            "hasMore": result.has_more,
            "page": result.page,
        }

    # -------------------- Helper methods --------------------
    async def _require_session(self, session_id: str) -> ChatSession:
        session = await self._presence.get(session_id)
        if session is None:
            raise UnauthenticatedException()
        return session

    async def _post_system_notice(self, room: str, text: str) -> None:
        notice = Message.system_notice(room, text)
        await self._messages.append(room, notice)
        await self._gateway.send_to_room(room, "message", notice.to_payload())
