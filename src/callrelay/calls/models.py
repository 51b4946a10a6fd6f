"""
Domain models for the outbound call lifecycle.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from callrelay.voice.models import VoiceSession


@dataclass(frozen=True)
class CallRequest:
    """A user-initiated outbound call."""

    destination: str
    variables: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_body(cls, body: dict[str, Any]) -> "CallRequest":
        """Build from the inbound JSON body: ``phoneNumber`` plus free-form variables."""
        variables = {
            str(k): "" if v is None else str(v)
            for k, v in body.items()
            if k != "phoneNumber"
        }
        return cls(destination=str(body.get("phoneNumber") or ""), variables=variables)

    def to_dict(self) -> dict[str, Any]:
        return {"destination": self.destination, "variables": dict(self.variables)}


@dataclass(frozen=True)
class RegistryEntry:
    """Data captured at call-creation time, keyed by the carrier call id."""

    original_request: CallRequest
    session: VoiceSession | None
    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def provider_call_id(self) -> str | None:
        return self.session.provider_call_id if self.session else None


@dataclass(frozen=True)
class InitiatedCall:
    carrier_call_id: str
    provider_call_id: str


class CallDetails(BaseModel):
    """Carrier-side facts about the finished call."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    duration: int | None = None
    timestamp: str | None = None
    recording_url: str | None = Field(default=None, alias="recordingUrl")
    destination: str | None = None
    origin: str | None = None


class NotificationPayload(BaseModel):
    """Consolidated post-call report sent to the downstream webhook."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    carrier_call_id: str = Field(..., alias="carrierCallId")
    status: str
    provider_call_id: str | None = Field(default=None, alias="providerCallId")
    recording_url: str | None = Field(default=None, alias="recordingUrl")
    transcript: str | None = None
    transcript_truncated: bool = Field(default=False, alias="transcriptTruncated")
    call_details: CallDetails = Field(default_factory=CallDetails, alias="callDetails")
    original_request: dict[str, Any] | None = Field(default=None, alias="originalRequest")

    def to_json_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
