"""
FastAPI应用主入口
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from api.routes import rooms as rooms_routes
from api.routes import ws as ws_routes
from api.middleware import RequestIDMiddleware, LoggingMiddleware
from core.config import settings
from core.exceptions import register_exception_handlers
from core.response import success_response
from core.logging_config import get_logger, configure_logging
from application.services.chat_coordinator import ChatCoordinator
from application.services.chat_events import ChatEventDispatcher
from infrastructure.realtime.connection_manager import ConnectionManager


# 初始化日志：在入口处显式配置，避免模块导入时的副作用
configure_logging()
logger = get_logger(__name__)


def build_chat_components(app: FastAPI) -> None:
    """组装实时聊天组件并挂载到 app.state"""
    connections = ConnectionManager(
        send_queue_max=settings.REALTIME_WS_SEND_QUEUE_MAX,
        overflow_policy=settings.REALTIME_WS_SEND_OVERFLOW_POLICY,
    )
    coordinator = ChatCoordinator.from_settings(connections, settings.chat)
    dispatcher = ChatEventDispatcher(
        coordinator=coordinator,
        gateway=connections,
        default_page_size=settings.DEFAULT_PAGE_SIZE,
    )
    app.state.realtime_connections = connections
    app.state.chat_coordinator = coordinator
    app.state.chat_dispatcher = dispatcher
    logger.info(
        "chat_initialized",
        rooms=settings.chat.rooms,
        default_room=settings.chat.default_room,
        history_capacity=settings.chat.history_capacity,
        typing_scope=settings.chat.typing_scope,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    build_chat_components(app)
    yield
    # 关闭实时连接：停止发送任务并关闭剩余socket
    connections = getattr(app.state, "realtime_connections", None)
    if connections is not None:
        await connections.aclose()
        logger.info("realtime_shutdown", message="Realtime connections closed")
    logger.info("application_shutdown", message="Application shutdown")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
    description="实时多房间聊天服务",
)

# 添加中间件（注意顺序：从下往上执行）
# 1. Request ID中间件（最先执行，为后续中间件提供request_id）
app.add_middleware(RequestIDMiddleware)

# 2. 日志中间件（依赖request_id）
app.add_middleware(LoggingMiddleware)

# 3. CORS中间件
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 注册全局异常处理器
register_exception_handlers(app)


# 注册路由
app.include_router(rooms_routes.router, prefix="/api/v1")
app.include_router(ws_routes.router, prefix="/api/v1")


@app.get("/", tags=["Root"])
async def root():
    """API根路径"""
    return success_response(
        data={
            "name": settings.PROJECT_NAME,
            "version": settings.VERSION,
            "docs": "/docs",
            "websocket": "/api/v1/ws/chat",
        },
    )


@app.get("/health", tags=["Health"])
async def health_check():
    """健康检查端点"""
    return success_response(data={"status": "healthy"})


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info"
    )
