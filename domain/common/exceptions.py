"""领域层业务异常定义，供领域与应用层使用。

核心（core）层仅负责全局映射与异常处理，尽量避免领域层反向依赖核心层。
Every exception carries a human-readable ``message`` which is what the
originating session receives in its ``error`` event.
"""
from __future__ import annotations

from typing import Optional
from shared.codes import BusinessCode


class BusinessException(Exception):
    """业务异常基类"""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        super().__init__(self.message)


# -------------------- InvalidInput --------------------
class InvalidInputException(BusinessException):
    def __init__(
        self,
        message: str = "Invalid input",
        *,
        code: int = BusinessCode.PARAM_VALIDATION_ERROR,
        error_type: str = "InvalidInput",
        field: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            error_type=error_type,
            details=details,
            field=field,
        )


class InvalidNameException(InvalidInputException):
    def __init__(self):
        super().__init__(
            "Username required",
            code=BusinessCode.INVALID_NAME,
            error_type="InvalidName",
            field="username",
        )


class InvalidMessageException(InvalidInputException):
    def __init__(self, message: str = "Invalid message", *, field: Optional[str] = "text"):
        super().__init__(
            message,
            code=BusinessCode.INVALID_MESSAGE,
            error_type="InvalidMessage",
            field=field,
        )


class InvalidReactionException(InvalidInputException):
    def __init__(self):
        super().__init__(
            "Invalid reaction",
            code=BusinessCode.INVALID_REACTION,
            error_type="InvalidReaction",
        )


# -------------------- NotFound --------------------
class NotFoundException(BusinessException):
    def __init__(
        self,
        message: str = "Not found",
        *,
        code: int = BusinessCode.NOT_FOUND,
        error_type: str = "NotFound",
        details: Optional[dict] = None,
    ):
        super().__init__(code=code, message=message, error_type=error_type, details=details)


class UnknownRoomException(NotFoundException):
    def __init__(self, room: Optional[str] = None):
        super().__init__(
            "Invalid room",
            code=BusinessCode.ROOM_NOT_FOUND,
            error_type="UnknownRoom",
            details={"room": room} if room is not None else None,
        )


class MessageNotFoundException(NotFoundException):
    def __init__(self, message_id: str, room: Optional[str] = None):
        details = {"message_id": message_id}
        if room is not None:
            details["room"] = room
        super().__init__(
            "Message not found",
            code=BusinessCode.MESSAGE_NOT_FOUND,
            error_type="MessageNotFound",
            details=details,
        )


class SessionNotFoundException(NotFoundException):
    def __init__(self, *, session_id: Optional[str] = None, display_name: Optional[str] = None):
        details = {}
        if session_id is not None:
            details["session_id"] = session_id
        if display_name is not None:
            details["username"] = display_name
        super().__init__(
            "Session not found",
            code=BusinessCode.SESSION_NOT_FOUND,
            error_type="SessionNotFound",
            details=details or None,
        )


class RecipientOfflineException(NotFoundException):
    def __init__(self, display_name: str):
        super().__init__(
            "User offline",
            code=BusinessCode.RECIPIENT_OFFLINE,
            error_type="RecipientOffline",
            details={"username": display_name},
        )


# -------------------- Others --------------------
class RateLimitedException(BusinessException):
    def __init__(self, retry_after_ms: Optional[int] = None):
        super().__init__(
            code=BusinessCode.TOO_MANY_REQUESTS,
            message="Too many messages. Slow down!",
            error_type="RateLimited",
            details={"retry_after_ms": retry_after_ms} if retry_after_ms else None,
        )


class DuplicateDisplayNameException(BusinessException):
    def __init__(self, display_name: str):
        super().__init__(
            code=BusinessCode.DISPLAY_NAME_TAKEN,
            message=f"Username {display_name} is already taken",
            error_type="DuplicateDisplayName",
            details={"username": display_name},
            field="username",
        )


class DuplicateSessionException(BusinessException):
    def __init__(self, session_id: str):
        super().__init__(
            code=BusinessCode.SESSION_ALREADY_JOINED,
            message="Session already joined",
            error_type="DuplicateSession",
            details={"session_id": session_id},
        )


class UnauthenticatedException(BusinessException):
    def __init__(self):
        super().__init__(
            code=BusinessCode.UNAUTHORIZED,
            message="Not authenticated",
            error_type="Unauthenticated",
        )


__all__ = [
    "BusinessException",
    "InvalidInputException",
    "InvalidNameException",
    "InvalidMessageException",
    "InvalidReactionException",
    "NotFoundException",
    "UnknownRoomException",
    "MessageNotFoundException",
    "SessionNotFoundException",
    "RecipientOfflineException",
    "RateLimitedException",
    "DuplicateDisplayNameException",
    "DuplicateSessionException",
    "UnauthenticatedException",
]
