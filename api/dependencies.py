"""
API依赖项 - 从应用状态获取聊天服务
"""
from fastapi import HTTPException, Request, WebSocket, status
from starlette.requests import HTTPConnection

from application.services.chat_coordinator import ChatCoordinator
from application.services.chat_events import ChatEventDispatcher
from infrastructure.realtime.connection_manager import ConnectionManager


def _state_attr(conn: HTTPConnection, name: str):
    value = getattr(conn.app.state, name, None)
    if value is None:
        raise RuntimeError(f"{name} not initialized. Ensure lifespan sets app.state.{name}.")
    return value


async def get_chat_coordinator(request: Request) -> ChatCoordinator:
    try:
        return _state_attr(request, "chat_coordinator")
    except RuntimeError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Chat service not ready",
        ) from None


def get_ws_coordinator(ws: WebSocket) -> ChatCoordinator:
    return _state_attr(ws, "chat_coordinator")


def get_ws_dispatcher(ws: WebSocket) -> ChatEventDispatcher:
    return _state_attr(ws, "chat_dispatcher")


def get_ws_connections(ws: WebSocket) -> ConnectionManager:
    return _state_attr(ws, "realtime_connections")
