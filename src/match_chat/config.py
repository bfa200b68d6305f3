from __future__ import annotations

from pydantic import ConfigDict, Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Runtime configuration for the match chat gateway, read from the environment."""

    HOST: str = "0.0.0.0"
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    # Message store (PostgreSQL)
    POSTGRES_USER: str
    POSTGRES_PASSWORD: str
    POSTGRES_DB: str
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_RECYCLE: int = 300
    DB_CREATE_SCHEMA: bool = False

    # Insert notifications; one channel per match: "<prefix>:<match_id>"
    REDIS_URL: str = "redis://localhost:6379/0"
    NOTIFY_CHANNEL_PREFIX: str = "messages"

    JWT_SECRET: str = ""
    JWT_ALGORITHM: str = "HS256"

    CORS_ORIGINS: list[str] = ["*"]

    # Sync engine
    WATERMARK_STORE_PATH: str = ".chat_watermarks.json"
    RECONCILE_INTERVAL_SECONDS: float = Field(default=30.0, gt=0)
    WS_HEARTBEAT_SECONDS: int = Field(default=30, gt=0)

    @property
    def database_url(self) -> str:
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.POSTGRES_DB}"
        )

    model_config = ConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()  # type: ignore[call-arg]
