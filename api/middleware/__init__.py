from .request_id import RequestIDMiddleware, bind_ws_context, get_client_ip
from .logging import LoggingMiddleware

__all__ = [
    "RequestIDMiddleware",
    "LoggingMiddleware",
    "bind_ws_context",
    "get_client_ip",
]
