"""
Data models for the voice-session provider.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

ROLE_USER = "user"
ROLE_AGENT = "agent"

_PROVIDER_ROLE_PREFIX = "MESSAGE_ROLE_"


def normalize_role(raw_role: str | None) -> str:
    """Map ``MESSAGE_ROLE_USER`` style roles to ``user``/``agent``/..."""
    role = (raw_role or "").strip()
    if role.upper().startswith(_PROVIDER_ROLE_PREFIX):
        role = role[len(_PROVIDER_ROLE_PREFIX):]
    return role.lower()


@dataclass(frozen=True)
class VoiceSession:
    """Voice session created for one outbound call."""

    provider_call_id: str
    join_url: str
    created_at: datetime
    raw_response: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)


@dataclass(frozen=True)
class TranscriptMessage:
    role: str
    text: str


@dataclass(frozen=True)
class MessagePage:
    """One page of the provider's message list."""

    messages: list[TranscriptMessage]
    next_cursor: str | None = None


@dataclass(frozen=True)
class RecordingProbe:
    """Outcome of one recording request.

    The provider answers 2xx without a redirect while the recording is still
    being produced, and redirects to the final asset once it exists.
    """

    status_code: int
    redirected: bool
    url: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def recording_url(self) -> str | None:
        if self.ok and self.redirected:
            return self.url
        return None
