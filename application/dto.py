"""
数据传输对象（DTO）- 客户端事件与历史查询的数据结构

Inbound WebSocket frames are ``{"type": <event>, ...fields}``; the field
names follow the chat client protocol (camelCase), exposed here as
snake_case attributes through aliases.
"""
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class EventDTO(BaseModel):
    """Base for inbound events: unknown fields are ignored."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class JoinEventDTO(EventDTO):
    username: str


class SendMessageEventDTO(EventDTO):
    room: Optional[str] = None
    # Left untyped so a non-string text reaches the coordinator as InvalidMessage
    text: Any = None


class ReactionEventDTO(EventDTO):
    message_id: Optional[str] = Field(default=None, alias="messageId")
    reaction: Optional[str] = None
    room: Optional[str] = None


class JoinRoomEventDTO(EventDTO):
    new_room: Optional[str] = Field(default=None, alias="newRoom")
    old_room: Optional[str] = Field(default=None, alias="oldRoom")


class TypingEventDTO(EventDTO):
    typing: bool = False


class PrivateMessageEventDTO(EventDTO):
    to: Optional[str] = None
    text: Any = None
    room: Optional[str] = Field(default=None, description="conversation key")


class FetchMessagesEventDTO(EventDTO):
    room: str
    page: int = Field(default=0, ge=0)
    limit: Optional[int] = Field(default=None, ge=1)


class RoomDTO(BaseModel):
    """房间列表项"""
    id: str
    name: str


class MessageDTO(BaseModel):
    """历史消息"""
    id: str
    room: str
    username: Optional[str]
    text: str
    timestamp: str
    reactions: dict[str, list[str]] = Field(default_factory=dict)
    system: bool = False


class MessagePageDTO(BaseModel):
    """分页历史"""
    messages: list[MessageDTO]
    has_more: bool = Field(alias="hasMore")
    page: int

    model_config = ConfigDict(populate_by_name=True)
