"""
Voice-session provider (Ultravox) configuration.
"""

from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class VoiceConfig(BaseSettings):
    """Voice provider configuration from environment."""

    model_config = SettingsConfigDict(
        env_prefix="ULTRAVOX_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    api_key: str = Field(default="")
    api_base_url: str = Field(default="https://api.ultravox.ai/api")

    # Session defaults
    model: str = Field(default="fixie-ai/ultravox")
    voice: str = Field(default="Mark")
    temperature: float = Field(default=0.3, ge=0.0, le=1.0)
    first_speaker: str = Field(default="FIRST_SPEAKER_USER")
    recording_enabled: bool = Field(default=True)
    max_duration: str = Field(default="900s")
    join_timeout: str = Field(default="30s")
    selected_tools: list[dict[str, Any]] = Field(
        default_factory=lambda: [{"toolName": "hangUp"}],
    )

    def session_template(self) -> dict[str, Any]:
        """Call-creation body without the system prompt."""
        return {
            "model": self.model,
            "voice": self.voice,
            "temperature": self.temperature,
            "firstSpeaker": self.first_speaker,
            "selectedTools": list(self.selected_tools),
            "medium": {"twilio": {}},
            "recordingEnabled": self.recording_enabled,
            "maxDuration": self.max_duration,
            "joinTimeout": self.join_timeout,
        }


def get_voice_config() -> VoiceConfig:
    return VoiceConfig()
