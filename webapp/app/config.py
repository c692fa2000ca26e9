from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Обязательные: без них приложение не стартует (а не "тихо" ходит в никуда)
    SUPABASE_URL: str = Field(..., min_length=1)
    SUPABASE_ANON_KEY: str = Field(..., min_length=1)

    DEBUG: bool = False

    # Локальное хранилище токена сессии
    SESSION_DB_URL: str = "sqlite+aiosqlite:///./autohub_session.db"

    # Логи: файлы пишем только по явному LOG_TO_FILE
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "./logs"
    LOG_TO_FILE: bool = False
    LOG_MAX_BYTES: int = 10 * 1024 * 1024
    LOG_BACKUP_COUNT: int = 5

    # Realtime: как часто слать heartbeat в канал (сек)
    REALTIME_HEARTBEAT_SEC: float = 30.0

    @field_validator("SUPABASE_URL")
    @classmethod
    def _strip_url(cls, value: str) -> str:
        value = value.strip().rstrip("/")
        if not value:
            raise ValueError("SUPABASE_URL is empty")
        return value

    @field_validator("SUPABASE_ANON_KEY")
    @classmethod
    def _strip_key(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("SUPABASE_ANON_KEY is empty")
        return value


settings = Settings()
