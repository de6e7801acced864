"""
Request ID 中间件
为 HTTP 请求生成或透传追踪ID；WebSocket 会话使用 session_id 作为追踪键。
两者都通过 structlog contextvars 进入日志。
"""
import uuid

from fastapi import Request, WebSocket
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import HTTPConnection

import structlog


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Request ID 追踪中间件

    1. 从请求头获取或生成新的request_id
    2. 绑定到 structlog 上下文
    3. 在响应头中返回request_id
    """

    HEADER_NAME = "X-Request-ID"

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(self.HEADER_NAME) or str(uuid.uuid4())
        client_ip = get_client_ip(request)

        request.state.request_id = request_id
        request.state.client_ip = client_ip

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            client_ip=client_ip,
            method=request.method,
            path=request.url.path,
        )

        response = await call_next(request)
        response.headers[self.HEADER_NAME] = request_id
        return response


def get_client_ip(conn: HTTPConnection) -> str:
    """获取客户端真实IP（优先代理头）"""
    x_forwarded_for = conn.headers.get("X-Forwarded-For")
    if x_forwarded_for:
        return x_forwarded_for.split(",")[0].strip()
    real_ip = conn.headers.get("X-Real-IP")
    if real_ip:
        return real_ip
    return conn.client.host if conn.client else "unknown"


def bind_ws_context(ws: WebSocket, session_id: str) -> None:
    """WebSocket 不经过 HTTP 中间件，在连接建立时手动绑定日志上下文。"""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        session_id=session_id,
        client_ip=get_client_ip(ws),
        path=ws.url.path,
    )
