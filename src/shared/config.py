"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from ``BOTSTORE_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="BOTSTORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    env: Literal["development", "test", "staging", "production"] = Field(default="development")

    # Logging (level defaults by env; no log file unless log_dir is set)
    log_level: str | None = Field(default=None)
    log_dir: str | None = Field(default=None)

    # Backing store
    database_url: str = Field(default="sqlite:///botstore.db")

    # Distributed cache tier (disabled when unset)
    redis_url: str | None = Field(default=None)

    # Read-through cache
    cache_ttl_seconds: float = Field(default=15 * 60, gt=0)
    cache_key_prefix: str = Field(default="botstore")

    # Store retry policy
    store_retry_attempts: int = Field(default=3, ge=0)
    store_retry_base_delay: float = Field(default=0.05, ge=0)
    store_retry_max_delay: float = Field(default=1.0, ge=0)
    evidence_handler_budget_seconds: float = Field(default=10.0, gt=0)

    # Reconciliation
    amount_tolerance: float = Field(default=0.01, ge=0)
    code_generation_attempts: int = Field(default=5, ge=1)
    transition_race_attempts: int = Field(default=3, ge=1)

    # Real-time fan-out
    fanout_queue_size: int = Field(default=256, ge=1)
    reconnect_base_delay: float = Field(default=1.0, ge=0)
    reconnect_max_attempts: int = Field(default=5, ge=1)

    # Payment status polling
    poll_max_attempts: int = Field(default=20, ge=1)
    poll_interval_seconds: float = Field(default=3.0, ge=0)

    # Notifications
    notifications_async: bool = Field(default=True)
    admin_email: str = Field(default="admin@botstore.local")
    support_email: str = Field(default="support@botstore.local")

    # Evidence authentication / admin session collaborator
    crypto_ipn_secret: str | None = Field(default=None)
    admin_session_cookie: str = Field(default="admin-session")
    admin_session_token: str | None = Field(default=None)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
