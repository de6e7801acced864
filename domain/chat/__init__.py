"""Chat domain exports."""
from .entity import ChatSession, Message
from .message_store import MessagePage, MessageStore
from .presence import PresenceDirectory
from .rate_limiter import RateLimiter
from .rooms import RoomRegistry

__all__ = [
    "ChatSession",
    "Message",
    "MessagePage",
    "MessageStore",
    "PresenceDirectory",
    "RateLimiter",
    "RoomRegistry",
]
