"""
Telephony provider interface definition.

The carrier places the outbound call, bridges it to the voice session's
media stream, and reports lifecycle changes through status callbacks.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from callrelay.shared.exceptions import (  # noqa: F401  (re-exported)
    TelephonyProviderError,
    WebhookParseError,
)


class CallStatus(str, Enum):
    """Call status values."""

    QUEUED = "queued"
    INITIATED = "initiated"
    RINGING = "ringing"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    BUSY = "busy"
    NO_ANSWER = "no_answer"
    FAILED = "failed"
    CANCELED = "canceled"
    UNKNOWN = "unknown"

    @property
    def is_terminal(self) -> bool:
        """Only a completed call triggers the post-call report."""
        return self is CallStatus.COMPLETED


@dataclass(frozen=True)
class PlaceCallRequest:
    """Request to place an outbound call bridged to a media stream."""

    to: str
    from_number: str
    stream_url: str
    status_callback_url: str
    status_callback_events: tuple[str, ...] = ()


@dataclass(frozen=True)
class PlaceCallResponse:
    """Response from call placement."""

    carrier_call_id: str
    status: CallStatus
    created_at: datetime
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class StatusEvent:
    """Parsed status callback from the carrier.

    ``timestamp`` and ``recording_url`` are carried through verbatim; they are
    forwarded downstream as the carrier reported them.
    """

    carrier_call_id: str
    status: CallStatus
    duration_seconds: int | None = None
    timestamp: str | None = None
    recording_url: str | None = None
    raw_status: str = ""
    raw_payload: dict[str, Any] = field(default_factory=dict)


class TelephonyProvider(ABC):
    """Abstract interface for telephony providers."""

    @abstractmethod
    async def place_call(self, request: PlaceCallRequest) -> PlaceCallResponse:
        """Place an outbound call.

        Raises:
            TelephonyProviderError: If the carrier rejects the call or is unreachable.
        """
        ...

    @abstractmethod
    def parse_status_callback(self, payload: dict[str, Any]) -> StatusEvent:
        """Parse a status callback payload.

        Raises:
            WebhookParseError: If the payload lacks the call identifier.
        """
        ...

    async def close(self) -> None:
        """Release network resources. No-op by default."""
        return None
