"""
Domain exceptions shared across the call pipeline.
"""

from typing import Any


class CallRelayError(Exception):
    """Base exception for callrelay."""


class ProviderError(CallRelayError):
    """Error returned by (or while talking to) an external provider."""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        provider_response: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.provider_response = provider_response or {}


class VoiceProviderError(ProviderError):
    """Voice-session provider request failed."""


class TelephonyProviderError(ProviderError):
    """Carrier request failed."""


class WebhookParseError(TelephonyProviderError):
    """Status callback payload could not be parsed."""


class CallInitiationError(CallRelayError):
    """A call could not be started; nothing was registered for it."""

    def __init__(self, message: str, stage: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.stage = stage
        self.cause = cause


class PromptValidationError(CallRelayError):
    """Submitted prompt was rejected."""
