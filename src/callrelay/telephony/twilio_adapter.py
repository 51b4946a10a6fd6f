"""
Twilio telephony provider adapter.

Places calls through the Twilio REST API (form-encoded, basic auth) with an
inline TwiML document that connects the call audio to the voice session's
media stream, and parses Twilio status callbacks.
"""

from datetime import datetime, timezone
from typing import Any
from xml.sax.saxutils import escape

import httpx

from callrelay.shared.logging import get_logger
from callrelay.telephony.config import TelephonyConfig, get_telephony_config
from callrelay.telephony.interface import (
    CallStatus,
    PlaceCallRequest,
    PlaceCallResponse,
    StatusEvent,
    TelephonyProvider,
    TelephonyProviderError,
    WebhookParseError,
)

logger = get_logger(__name__)

TWILIO_STATUS_MAP: dict[str, CallStatus] = {
    "queued": CallStatus.QUEUED,
    "initiated": CallStatus.INITIATED,
    "ringing": CallStatus.RINGING,
    "answered": CallStatus.IN_PROGRESS,
    "in-progress": CallStatus.IN_PROGRESS,
    "completed": CallStatus.COMPLETED,
    "busy": CallStatus.BUSY,
    "no-answer": CallStatus.NO_ANSWER,
    "failed": CallStatus.FAILED,
    "canceled": CallStatus.CANCELED,
}

# escape() handles & < >; attribute values also need the quote
_ATTR_ENTITIES = {'"': "&quot;"}


def build_stream_twiml(stream_url: str) -> str:
    """TwiML that bridges the call audio to a bidirectional media stream."""
    url = escape(stream_url, _ATTR_ENTITIES)
    return f'<Response><Connect><Stream url="{url}"/></Connect></Response>'


def parse_twilio_status_form(payload: dict[str, Any]) -> StatusEvent:
    """Parse a Twilio status callback form into a StatusEvent.

    Raises:
        WebhookParseError: If CallSid is missing.
    """
    call_sid = (payload.get("CallSid") or "").strip()
    if not call_sid:
        raise WebhookParseError(
            message="Missing CallSid in webhook payload",
            error_code="MISSING_CALL_SID",
            provider_response=payload,
        )

    raw_status = (payload.get("CallStatus") or "").strip().lower()
    status = TWILIO_STATUS_MAP.get(raw_status)
    if status is None:
        logger.warning(
            "Unknown Twilio call status",
            extra={"call_sid": call_sid, "call_status": raw_status},
        )
        status = CallStatus.UNKNOWN

    duration_seconds = None
    if payload.get("CallDuration") not in (None, ""):
        try:
            duration_seconds = int(payload["CallDuration"])
        except (ValueError, TypeError):
            logger.warning(
                "Invalid CallDuration in webhook payload",
                extra={"call_sid": call_sid, "call_duration": payload.get("CallDuration")},
            )

    return StatusEvent(
        carrier_call_id=call_sid,
        status=status,
        duration_seconds=duration_seconds,
        timestamp=payload.get("Timestamp") or None,
        recording_url=payload.get("RecordingUrl") or None,
        raw_status=raw_status,
        raw_payload=dict(payload),
    )


class TwilioAdapter(TelephonyProvider):
    """Twilio telephony provider adapter.

    Uses a lazily created ``httpx.AsyncClient``; pass ``http_client`` to
    inject a preconfigured (or mock-transport) client.
    """

    def __init__(
        self,
        config: TelephonyConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        self._config = config or get_telephony_config()
        self._http_client = http_client
        self._owns_client = http_client is None
        self._timeout_seconds = timeout_seconds

    def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(timeout=httpx.Timeout(self._timeout_seconds))
            self._owns_client = True
        return self._http_client

    async def close(self) -> None:
        if self._owns_client and self._http_client is not None and not self._http_client.is_closed:
            await self._http_client.aclose()
            self._http_client = None

    def _get_auth(self) -> tuple[str, str]:
        return (self._config.twilio_account_sid, self._config.twilio_auth_token)

    def _get_api_url(self, endpoint: str) -> str:
        base = self._config.twilio_api_base_url.rstrip("/")
        account_sid = self._config.twilio_account_sid
        return f"{base}/2010-04-01/Accounts/{account_sid}{endpoint}"

    async def place_call(self, request: PlaceCallRequest) -> PlaceCallResponse:
        """Place an outbound call via Twilio."""
        client = self._get_client()

        payload: dict[str, Any] = {
            "To": request.to,
            "From": request.from_number,
            "Twiml": build_stream_twiml(request.stream_url),
            "StatusCallback": request.status_callback_url,
            "StatusCallbackMethod": "POST",
        }
        if request.status_callback_events:
            payload["StatusCallbackEvent"] = list(request.status_callback_events)

        logger.info(
            "Placing Twilio call",
            extra={"to": request.to, "status_callback_url": request.status_callback_url},
        )

        try:
            response = await client.post(
                self._get_api_url("/Calls.json"),
                data=payload,
                auth=self._get_auth(),
            )
        except httpx.HTTPError as e:
            logger.exception("HTTP error during Twilio call placement", extra={"to": request.to})
            raise TelephonyProviderError(
                message=f"HTTP error: {e!s}",
                error_code="HTTP_ERROR",
            ) from e

        if response.status_code >= 400:
            try:
                error_data = response.json() if response.content else {}
            except ValueError:
                error_data = {"body": response.text}
            if not isinstance(error_data, dict):
                error_data = {"body": error_data}
            logger.error(
                "Twilio call placement failed",
                extra={"status_code": response.status_code, "error": error_data, "to": request.to},
            )
            raise TelephonyProviderError(
                message=error_data.get("message", "Call placement failed"),
                error_code=str(error_data.get("code", response.status_code)),
                provider_response=error_data,
            )

        try:
            data = response.json()
            call_sid = data["sid"]
        except (ValueError, KeyError, TypeError) as e:
            raise TelephonyProviderError(
                message="Malformed Twilio call response",
                error_code="BAD_RESPONSE",
            ) from e

        if not isinstance(call_sid, str) or not call_sid:
            raise TelephonyProviderError(
                message="Twilio call response has no call sid",
                error_code="BAD_RESPONSE",
                provider_response=data,
            )

        logger.info("Twilio call created", extra={"call_sid": call_sid})

        return PlaceCallResponse(
            carrier_call_id=call_sid,
            status=TWILIO_STATUS_MAP.get(str(data.get("status", "")), CallStatus.QUEUED),
            created_at=datetime.now(timezone.utc),
            raw_response=data,
        )

    def parse_status_callback(self, payload: dict[str, Any]) -> StatusEvent:
        return parse_twilio_status_form(payload)
