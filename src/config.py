"""Application configuration using pydantic-settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_ALLOWED_MIME_TYPES = [
    "audio/mpeg",
    "audio/wav",
    "audio/mp3",
    "audio/m4a",
    "audio/ogg",
    "audio/webm",
    "audio/x-mpeg-3",
    "audio/x-wav",
]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    app_name: str = "transcription-store"
    app_env: Literal["development", "staging", "production"] = "development"
    debug: bool = False
    secret_key: str = "change-me-in-production"

    # Key-value backend
    storage_backend: Literal["redis", "memory"] = "redis"
    redis_url: str = "redis://localhost:6379/0"

    # Transcription records
    transcription_ttl_seconds: int = Field(86400, gt=0)  # 24 hours
    expiry_grace_seconds: int = Field(3600, ge=0)
    max_upload_size_mb: int = Field(25, gt=0)
    allowed_mime_types: list[str] = Field(
        default_factory=lambda: list(DEFAULT_ALLOWED_MIME_TYPES)
    )

    # Expiry sweeper
    sweep_interval_seconds: float = 3600.0

    # Rate Limiting
    rate_limit_per_minute: int = 60
    rate_limit_per_hour: int = 500

    # Celery
    celery_broker_url: str = "redis://localhost:6379/0"
    celery_result_backend: str = "redis://localhost:6379/1"

    # Logging
    log_level: str = "INFO"

    @property
    def max_upload_size_bytes(self) -> int:
        """Upload size limit in bytes."""
        return self.max_upload_size_mb * 1024 * 1024


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
