from functools import lru_cache
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Class Points API"
    app_env: str = "dev"
    app_version: str = "1.0.0"
    api_prefix: str = ""
    log_level: str = "INFO"
    cors_origins: str = "*"

    jwt_secret: str = "change_me"
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 24 * 60

    data_dir: str = "./data"
    store_cache_ttl_seconds: float = 30.0
    store_cache_size: int = 20
    store_max_backups: int = 10
    store_read_retry_delay_seconds: float = 0.05

    rankings_cache_ttl_seconds: float = 60.0
    rankings_cache_size: int = 50
    rankings_broadcast_limit: int = 50

    timezone: str = "Asia/Shanghai"
    week_start: str = "sunday"

    sse_heartbeat_seconds: float = 30.0
    sse_max_buffer: int = 100
    sse_poll_seconds: float = 1.0

    request_timeout_seconds: float = 30.0
    rate_limit_per_minute: int = 600
    max_body_bytes: int = 1024 * 1024

    bootstrap_teacher_login: str = "admin"
    bootstrap_teacher_password: str = "admin123"
    bootstrap_teacher_name: str = "Administrator"
    auto_create_teacher: bool = True

    @field_validator("week_start")
    @classmethod
    def _known_weekday(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in WEEKDAYS:
            raise ValueError(f"week_start must be one of {', '.join(WEEKDAYS)}")
        return value

    @property
    def data_path(self) -> Path:
        return Path(self.data_dir).resolve()

    @property
    def backup_path(self) -> Path:
        return self.data_path / "backups"

    @property
    def week_start_index(self) -> int:
        return WEEKDAYS.index(self.week_start)

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


def clear_settings_cache() -> None:
    get_settings.cache_clear()
