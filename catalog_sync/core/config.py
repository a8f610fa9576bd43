"""
Application configuration from environment variables.
Settings class using pydantic-settings with explicit validation before a sync run.
"""

from functools import lru_cache
from pathlib import Path
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from catalog_sync.core.errors import ConfigError

# Resolve .env from the project root so it loads when running from the root or a subdirectory
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    """
    Settings loaded from environment and .env.
    Credentials default to empty so the package imports without them; call
    validate_for_sync() before talking to Arternal or Supabase.
    """

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE if _ENV_FILE.exists() else ".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Supabase (service role; the sync writes past row-level security)
    SUPABASE_URL: str = ""
    SUPABASE_SERVICE_KEY: str = ""

    # Arternal catalog API
    arternal_api_base_url: str = Field(
        default="https://api.arternal.com/api/v1",
        description="Arternal REST base URL",
        validation_alias="ARTERNAL_API_BASE_URL",
    )
    arternal_api_key: str = Field(
        default="",
        description="Arternal API key (sent as X-API-Key)",
        validation_alias="ARTERNAL_API_KEY",
    )
    arternal_timeout_sec: float = Field(default=30.0, validation_alias="ARTERNAL_TIMEOUT_SEC")
    arternal_max_retries: int = Field(default=3, ge=0, validation_alias="ARTERNAL_MAX_RETRIES")
    arternal_backoff_base_sec: float = Field(default=1.0, ge=0, validation_alias="ARTERNAL_BACKOFF_BASE_SEC")
    arternal_backoff_max_sec: float = Field(default=30.0, ge=0, validation_alias="ARTERNAL_BACKOFF_MAX_SEC")
    arternal_rate_limit_max_requests: int = Field(
        default=60,
        ge=1,
        description="Requests allowed per rate-limit window",
        validation_alias="ARTERNAL_RATE_LIMIT_MAX_REQUESTS",
    )
    arternal_rate_limit_window_sec: float = Field(
        default=10.0,
        gt=0,
        validation_alias="ARTERNAL_RATE_LIMIT_WINDOW_SEC",
    )

    # Sync engine
    sync_workers: int = Field(
        default=5,
        ge=1,
        description="Concurrent detail backfill workers",
        validation_alias="SYNC_WORKERS",
    )
    sync_page_size: int = Field(default=100, ge=1, le=100, validation_alias="SYNC_PAGE_SIZE")

    # Completion notification (caller layer only)
    notify_webhook_url: str = Field(default="", validation_alias="NOTIFY_WEBHOOK_URL")
    notify_webhook_token: str = Field(default="", validation_alias="NOTIFY_WEBHOOK_TOKEN")

    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    @field_validator("arternal_api_base_url", "SUPABASE_URL", "notify_webhook_url", mode="before")
    @classmethod
    def strip_whitespace(cls, v: str) -> str:
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: object) -> str:
        if v is None or (isinstance(v, str) and not v.strip()):
            return "INFO"
        return str(v).strip().upper()

    def validate_for_sync(self) -> None:
        """
        Call before a sync run to check that the credentials it needs are set.
        Raises ConfigError listing the missing keys.
        """
        missing: List[str] = []
        if not self.SUPABASE_URL:
            missing.append("SUPABASE_URL")
        if not self.SUPABASE_SERVICE_KEY:
            missing.append("SUPABASE_SERVICE_KEY")
        if not self.arternal_api_key:
            missing.append("ARTERNAL_API_KEY")
        if missing:
            raise ConfigError(f"Missing required environment variables: {', '.join(missing)}")


@lru_cache()
def get_settings() -> Settings:
    return Settings()
