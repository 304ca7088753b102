"""Application settings and configuration management."""
from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or defaults."""

    DB_PATH: str = Field(default="data/interview.db")
    APP_CONFIG_PATH: str = Field(default="app_config.json")
    PLANS_PATH: str = Field(default="")

    WARNING_BUDGET: int = Field(default=3, ge=0)
    REINTERVIEW_WINDOW_HOURS: int = Field(default=2, ge=1)
    BACKGROUND_WORKERS: int = Field(default=4, ge=1)
    PENDING_TURN_TIMEOUT_S: float = Field(default=120.0, gt=0)

    LOG_LEVEL: str = Field(default="INFO")
    ENABLE_FILE_LOGS: bool = Field(default=True)
    LOG_FILE: str = Field(default="logs/interview.log")
    LOG_MAX_BYTES: int = Field(default=5242880, ge=1024)
    LOG_BACKUP_COUNT: int = Field(default=5, ge=0)

    model_config = SettingsConfigDict(env_file=".env", validate_assignment=True)


settings = Settings()
