from __future__ import annotations

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    POSTGRES_USER: str = "chat"
    POSTGRES_PASSWORD: str = "chat"
    POSTGRES_DB: str = "chat"
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432

    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_RECYCLE: int = 300

    # empty disables Redis; fan-out then stays in-process
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_PUBSUB_CHANNEL: str = "chat.fanout"

    JWT_SECRET: str = ""
    JWT_ALGORITHM: str = "HS256"

    CORS_ORIGINS: list[str] = ["*"]

    WS_HEARTBEAT_SECONDS: int = 30

    # client side
    API_BASE_URL: str = "http://localhost:8000"
    STORAGE_BASE_URL: str | None = None
    HTTP_TIMEOUT: float = 30.0

    HISTORY_PAGE_SIZE: int = 50
    POLL_INTERVAL: float = 2.0
    POLL_LIMIT: int = 10
    POLL_AFTER_SEND_DELAY: float = 0.5

    WS_RETRY_ATTEMPTS: int = 10
    WS_RETRY_BASE_DELAY: float = 1.0
    WS_RETRY_MAX_DELAY: float = 30.0
    WS_RETRY_JITTER: float = 1.0

    UPLOAD_MAX_BYTES: int = 50 * 1024 * 1024
    UPLOAD_CHUNK_SIZE: int = 64 * 1024
    UPLOAD_ALLOWED_TYPES: list[str] = [
        "image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp",
        "application/pdf", "text/plain", "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/vnd.ms-excel",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "application/zip", "application/x-rar-compressed",
        "audio/mpeg", "audio/wav", "audio/ogg", "audio/webm",
        "video/mp4", "video/avi", "video/mov", "video/wmv",
    ]

    @property
    def database_url(self) -> str:
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.POSTGRES_DB}"
        )

    @property
    def ws_url(self) -> str:
        base = self.API_BASE_URL.rstrip("/")
        if base.startswith("https:"):
            base = "wss:" + base[len("https:"):]
        elif base.startswith("http:"):
            base = "ws:" + base[len("http:"):]
        return f"{base}/ws/chat"

    @property
    def storage_url(self) -> str:
        return (self.STORAGE_BASE_URL or self.API_BASE_URL).rstrip("/")

    model_config = ConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()
