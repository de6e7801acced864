"""
配置文件 - 项目配置管理
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field, field_validator
from pydantic import model_validator


class ChatSettings(BaseModel):
    # Pre-registered rooms; no dynamic creation at runtime
    rooms: list[str] = Field(default_factory=lambda: ["general", "random", "tech"])
    default_room: str = "general"
    # Per-room history bound; oldest entries are discarded past this size
    history_capacity: int = Field(default=1000, ge=1)
    # Sliding-window message rate limit per session
    rate_limit_window_ms: int = Field(default=1000, ge=1)
    rate_limit_max_messages: int = Field(default=5, ge=1)
    # global | room
    typing_scope: str = "global"

    @field_validator("rooms", mode="before")
    @classmethod
    def _parse_rooms(cls, v):
        """允许逗号分隔字符串。"""
        if isinstance(v, str):
            s = v.strip()
            if not (s.startswith("[") and s.endswith("]")):
                return [item.strip() for item in s.split(",") if item.strip()]
        return v

    @field_validator("typing_scope")
    @classmethod
    def _validate_typing_scope(cls, v: str) -> str:
        scope = (v or "global").strip().lower()
        if scope not in {"global", "room"}:
            raise ValueError("chat.typing_scope must be 'global' or 'room'")
        return scope

    @model_validator(mode="after")
    def _validate_default_room(self):
        if not self.rooms:
            raise ValueError("chat.rooms must not be empty")
        if self.default_room not in self.rooms:
            raise ValueError(
                f"chat.default_room '{self.default_room}' is not one of the registered rooms {self.rooms}"
            )
        return self


class Settings(BaseSettings):
    """项目配置"""

    # 基础配置
    PROJECT_NAME: str = Field(default="Realtime Chat Rooms")
    VERSION: str = Field(default="1.0.0")
    DEBUG: bool = Field(default=True)
    ENVIRONMENT: str = Field(default="development")

    # CORS配置
    CORS_ORIGINS: list = Field(
        default=["http://localhost:3000", "http://localhost:3001"],
    )

    # 聊天室配置（嵌套模型，环境变量形如 CHAT__ROOMS='["general","random"]'）
    chat: ChatSettings = Field(default_factory=ChatSettings)

    # 分页配置（支持环境变量覆盖）
    DEFAULT_PAGE_SIZE: int = Field(default=20)
    MAX_PAGE_SIZE: int = Field(default=100)

    # Realtime/WebSocket 配置
    REALTIME_WS_SEND_QUEUE_MAX: int = Field(default=100)
    REALTIME_WS_SEND_OVERFLOW_POLICY: str = Field(
        default="drop_oldest",
        description="队列溢出策略: drop_oldest | drop_new | disconnect"
    )
    REALTIME_WS_IDLE_PING_INTERVAL_S: float = Field(default=30.0)
    REALTIME_WS_PONG_GRACE_S: float = Field(default=10.0)
    REALTIME_WS_MISSED_PING_LIMIT: int = Field(default=2)

    # pydantic-settings v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="allow",
        env_nested_delimiter="__",
    )

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors_origins(cls, v):
        """允许 JSON 字符串或逗号分隔字符串两种格式。"""
        if isinstance(v, list):
            return v
        if isinstance(v, str):
            s = v.strip()
            if s.startswith("[") and s.endswith("]"):
                import json
                try:
                    arr = json.loads(s)
                    if isinstance(arr, list):
                        return arr
                except ValueError:
                    pass
            if "," in s:
                return [item.strip() for item in s.split(",") if item.strip()]
            return [s]
        return v


settings = Settings()
