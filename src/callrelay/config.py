"""
Application configuration with environment-driven settings.

Credentials and endpoints are never embedded in source: every value below is
read from the process environment or a local `.env` file.
"""

import os
from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "callrelay"
    app_env: Literal["dev", "qa", "uat", "prod"] = "dev"
    debug: bool = False
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = Field(default=3000, ge=1, le=65535)

    # Downstream automation webhook (post-call report)
    make_webhook_url: str = Field(
        default="",
        description="URL receiving the consolidated post-call JSON report",
    )

    # Outbound HTTP
    http_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout applied to every outbound HTTP request",
    )

    # Call registry lifetime
    registry_ttl_seconds: int = Field(
        default=6 * 60 * 60,
        ge=0,
        description="Seconds a registered call stays correlatable; 0 keeps entries forever",
    )
    registry_sweep_interval_seconds: int = Field(
        default=300,
        ge=1,
        description="Interval of the background registry sweep",
    )

    # Post-call artifact retrieval
    recording_max_attempts: int = Field(default=3, ge=1, le=10)
    recording_retry_delay_seconds: float = Field(default=5.0, ge=0)
    transcript_max_pages: int = Field(
        default=50,
        ge=1,
        description="Upper bound on message-list pages read for one transcript",
    )

    # Prompt storage
    prompt_file: str = Field(
        default="./prompt.json",
        description="JSON file holding the editable system prompt",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return str(v).strip().upper() or "INFO"


@lru_cache(maxsize=1)
def _get_settings_cached() -> Settings:
    return Settings()


def get_settings() -> Settings:
    # Tests monkeypatch the environment between cases; don't serve a frozen copy.
    if os.environ.get("PYTEST_CURRENT_TEST"):
        return Settings()
    return _get_settings_cached()
