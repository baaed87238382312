"""Configuration management for wikify-progress."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .history import DEFAULT_HISTORY_LIMIT


class ProgressSettings(BaseSettings):
    """Runtime configuration sourced from environment variables and optional .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    log_level: str = Field(default="INFO", validation_alias="WIKIFY_PROGRESS_LOG_LEVEL")
    history_limit: int = Field(
        default=DEFAULT_HISTORY_LIMIT, validation_alias="WIKIFY_PROGRESS_HISTORY_LIMIT"
    )
    notification_config_path: Path | None = Field(
        default=None, validation_alias="WIKIFY_PROGRESS_NOTIFICATION_CONFIG"
    )

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(
                "WIKIFY_PROGRESS_LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG"
            )
        return normalized

    @field_validator("history_limit")
    @classmethod
    def _validate_history_limit(cls, value: int) -> int:
        if value < 1:
            raise ValueError("WIKIFY_PROGRESS_HISTORY_LIMIT must be >= 1")
        return value

    @field_validator("notification_config_path", mode="before")
    @classmethod
    def _empty_path_is_none(cls, value):
        if value is None or (isinstance(value, str) and not value.strip()):
            return None
        return value


@lru_cache(maxsize=1)
def get_settings() -> ProgressSettings:
    """Return cached settings instance."""

    settings = ProgressSettings()
    if settings.notification_config_path is not None:
        settings.notification_config_path = settings.notification_config_path.expanduser().resolve()
    return settings


__all__ = ["ProgressSettings", "get_settings"]
