"""Inbound chat event dispatch.

Translates raw WebSocket frames into ChatCoordinator calls. Every failure
is reported as an ``error`` event to the originating session only; nothing
raised while handling one frame escapes to the connection loop.
"""
from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, Optional

from pydantic import BaseModel, ValidationError

from application.dto import (
    FetchMessagesEventDTO,
    JoinEventDTO,
    JoinRoomEventDTO,
    PrivateMessageEventDTO,
    ReactionEventDTO,
    SendMessageEventDTO,
    TypingEventDTO,
)
from application.ports.realtime import BroadcastGateway
from application.services.chat_coordinator import ChatCoordinator
from core.logging_config import get_logger
from domain.common.exceptions import BusinessException


logger = get_logger(__name__)

_Handler = Callable[[str, Any], Awaitable[None]]


class ChatEventDispatcher:
    def __init__(self, *, coordinator: ChatCoordinator, gateway: BroadcastGateway, default_page_size: int = 20) -> None:
        self._chat = coordinator
        self._gateway = gateway
        self._default_page_size = default_page_size
        self._routes: Dict[str, tuple[type[BaseModel], _Handler]] = {
            "join": (JoinEventDTO, self._on_join),
            "message": (SendMessageEventDTO, self._on_message),
            "reaction": (ReactionEventDTO, self._on_reaction),
            "joinroom": (JoinRoomEventDTO, self._on_join_room),
            "typing": (TypingEventDTO, self._on_typing),
            "privatemessage": (PrivateMessageEventDTO, self._on_private_message),
            "fetchmessages": (FetchMessagesEventDTO, self._on_fetch_messages),
        }

    async def dispatch(self, session_id: str, frame: Any) -> None:
        if not isinstance(frame, dict):
            await self._reply_error(session_id, "Malformed event")
            return
        etype = str(frame.get("type") or "")
        if etype.lower() == "ping":
            await self._gateway.send_to_session(session_id, "pong", None)
            return
        if etype.lower() == "pong":
            await self._gateway.send_to_session(session_id, "connectionHealth", {"status": "healthy"})
            return
        route = self._routes.get(etype.lower())
        if route is None:
            await self._reply_error(session_id, "Unknown event type")
            return
        model, handler = route
        try:
            event = model.model_validate(frame)
        except ValidationError as exc:
            logger.info("chat_event_invalid", session_id=session_id, type=etype, errors=exc.error_count())
            await self._reply_error(session_id, f"Invalid {etype} event")
            return
        try:
            await handler(session_id, event)
        except BusinessException as exc:
            logger.info("chat_event_rejected", session_id=session_id, type=etype, error_type=exc.error_type)
            await self._reply_error(session_id, exc.message)
        except Exception as exc:
            logger.error("chat_event_failed", session_id=session_id, type=etype, error=str(exc), exc_info=True)
            await self._reply_error(session_id, "Internal server error")

    # -------------------- Handlers --------------------
    async def _on_join(self, session_id: str, event: JoinEventDTO) -> None:
        await self._chat.join(session_id, event.username)

    async def _on_message(self, session_id: str, event: SendMessageEventDTO) -> None:
        await self._chat.send_message(session_id, event.room, event.text)

    async def _on_reaction(self, session_id: str, event: ReactionEventDTO) -> None:
        await self._chat.react(session_id, event.message_id, event.reaction, event.room)

    async def _on_join_room(self, session_id: str, event: JoinRoomEventDTO) -> None:
        await self._chat.switch_room(session_id, event.new_room, event.old_room)

    async def _on_typing(self, session_id: str, event: TypingEventDTO) -> None:
        await self._chat.set_typing(session_id, event.typing)

    async def _on_private_message(self, session_id: str, event: PrivateMessageEventDTO) -> None:
        await self._chat.send_private_message(session_id, event.to, event.text, event.room)

    async def _on_fetch_messages(self, session_id: str, event: FetchMessagesEventDTO) -> None:
        page = await self._chat.read_page(event.room, event.page, event.limit or self._default_page_size)
        await self._gateway.send_to_session(session_id, "messageHistory", page)

    async def _reply_error(self, session_id: str, message: Optional[str]) -> None:
        await self._gateway.send_to_session(session_id, "error", message or "Error")
