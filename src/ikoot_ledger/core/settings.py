from functools import lru_cache
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="allow")

    environment: Literal["development", "staging", "production"] = "development"
    database_url: str = "sqlite+aiosqlite:///./ikoot_ledger.db"
    database_echo: bool = False
    database_auto_create: bool = False
    sqlite_busy_timeout_seconds: float = 5.0

    # Loyalty awards
    checkin_award_points: int = 5

    # Transaction retry policy for lock conflicts / deadlocks
    ledger_retry_max_attempts: int = 3
    ledger_retry_base_backoff_seconds: float = 0.05
    ledger_retry_backoff_multiplier: float = 2.0
    ledger_retry_max_backoff_seconds: float = 1.0

    # Tracing; spans go to OTEL_EXPORTER_OTLP_ENDPOINT when set
    tracing_console_export: bool = False

    # Admin surface
    admin_api_key: str = ""
    admin_default_identity: str = "admin"

    @field_validator("checkin_award_points")
    @classmethod
    def _validate_award(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("checkin_award_points must be positive")
        return value

    @field_validator("ledger_retry_max_attempts")
    @classmethod
    def _validate_attempts(cls, value: int) -> int:
        return max(value, 1)


@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore[arg-type]


settings = get_settings()
