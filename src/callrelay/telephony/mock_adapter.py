"""
Mock telephony provider adapter for local development and tests.

Never touches the network; records every placement request and hands out
sequential carrier call ids.
"""

from datetime import datetime, timezone
from typing import Any

from callrelay.shared.logging import get_logger
from callrelay.telephony.interface import (
    CallStatus,
    PlaceCallRequest,
    PlaceCallResponse,
    StatusEvent,
    TelephonyProvider,
    TelephonyProviderError,
)
from callrelay.telephony.twilio_adapter import parse_twilio_status_form

logger = get_logger(__name__)


class MockTelephonyAdapter(TelephonyProvider):
    """Mock telephony provider."""

    def __init__(self) -> None:
        self._calls: list[PlaceCallRequest] = []
        self._next_call_id: int = 1
        self._should_fail: bool = False
        self._fail_error: str = "Mock failure"
        self._fail_code: str = "MOCK_ERROR"

    def reset(self) -> None:
        self._calls.clear()
        self._next_call_id = 1
        self._should_fail = False
        self._fail_error = "Mock failure"
        self._fail_code = "MOCK_ERROR"

    def configure_failure(
        self,
        should_fail: bool = True,
        error_message: str = "Mock failure",
        error_code: str = "MOCK_ERROR",
    ) -> None:
        self._should_fail = should_fail
        self._fail_error = error_message
        self._fail_code = error_code

    @property
    def calls(self) -> list[PlaceCallRequest]:
        return self._calls.copy()

    def get_last_call(self) -> PlaceCallRequest | None:
        return self._calls[-1] if self._calls else None

    async def place_call(self, request: PlaceCallRequest) -> PlaceCallResponse:
        logger.info("Mock: placing call", extra={"to": request.to})

        if self._should_fail:
            raise TelephonyProviderError(
                message=self._fail_error,
                error_code=self._fail_code,
            )

        self._calls.append(request)

        carrier_call_id = f"MOCK_CALL_{self._next_call_id:06d}"
        self._next_call_id += 1

        return PlaceCallResponse(
            carrier_call_id=carrier_call_id,
            status=CallStatus.QUEUED,
            created_at=datetime.now(timezone.utc),
            raw_response={"mock": True, "sid": carrier_call_id},
        )

    def parse_status_callback(self, payload: dict[str, Any]) -> StatusEvent:
        return parse_twilio_status_form(payload)

    def generate_status_payload(
        self,
        carrier_call_id: str,
        status: str = "completed",
        duration_seconds: int | None = None,
        recording_url: str | None = None,
    ) -> dict[str, Any]:
        """Build a Twilio-shaped status callback form for a mock call."""
        payload: dict[str, Any] = {
            "CallSid": carrier_call_id,
            "CallStatus": status,
            "Timestamp": datetime.now(timezone.utc).strftime("%a, %d %b %Y %H:%M:%S +0000"),
        }
        if duration_seconds is not None:
            payload["CallDuration"] = str(duration_seconds)
        if recording_url:
            payload["RecordingUrl"] = recording_url
        return payload
