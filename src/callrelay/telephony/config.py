"""
Telephony provider configuration.
"""

from enum import Enum

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ProviderType(str, Enum):
    """Supported telephony provider types."""

    TWILIO = "twilio"
    MOCK = "mock"


DEFAULT_STATUS_CALLBACK_EVENTS = ("initiated", "ringing", "answered", "completed")


class TelephonyConfig(BaseSettings):
    """Telephony provider configuration from environment."""

    model_config = SettingsConfigDict(
        env_prefix="TELEPHONY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Provider selection
    provider_type: ProviderType = Field(default=ProviderType.TWILIO)

    # Provider credentials
    twilio_account_sid: str = Field(default="")
    twilio_auth_token: str = Field(default="")
    twilio_from_number: str = Field(default="")
    twilio_api_base_url: str = Field(default="https://api.twilio.com")

    # Public base URL the carrier posts status callbacks to.
    # When empty, the URL of the first local ngrok tunnel is used.
    webhook_base_url: str = Field(default="")
    ngrok_api_url: str = Field(default="http://localhost:4040/api/tunnels")

    status_callback_path: str = Field(default="/call-status")
    status_callback_events: tuple[str, ...] = Field(default=DEFAULT_STATUS_CALLBACK_EVENTS)

    def get_webhook_url(self, base_url: str | None = None, path: str | None = None) -> str:
        base = (base_url if base_url is not None else self.webhook_base_url).rstrip("/")
        return f"{base}{path or self.status_callback_path}"


def get_telephony_config() -> TelephonyConfig:
    return TelephonyConfig()
