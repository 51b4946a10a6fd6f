"""Tests for the Twilio telephony adapter."""

import base64
from urllib.parse import parse_qs

import httpx
import pytest

from callrelay.telephony.config import ProviderType, TelephonyConfig
from callrelay.telephony.interface import (
    CallStatus,
    PlaceCallRequest,
    TelephonyProviderError,
    WebhookParseError,
)
from callrelay.telephony.twilio_adapter import (
    TwilioAdapter,
    build_stream_twiml,
    parse_twilio_status_form,
)


@pytest.fixture
def twilio_config() -> TelephonyConfig:
    return TelephonyConfig(
        provider_type=ProviderType.TWILIO,
        twilio_account_sid="AC_TEST_ACCOUNT_SID",
        twilio_auth_token="test_auth_token_12345",
        twilio_from_number="+14155550000",
        webhook_base_url="https://example.com",
    )


@pytest.fixture
def call_request() -> PlaceCallRequest:
    return PlaceCallRequest(
        to="+14155551234",
        from_number="+14155550000",
        stream_url="wss://voice.test/join/uv-1?token=a&b=c",
        status_callback_url="https://example.com/call-status",
        status_callback_events=("initiated", "ringing", "answered", "completed"),
    )


def adapter_with(handler, config: TelephonyConfig) -> TwilioAdapter:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return TwilioAdapter(config=config, http_client=client)


class TestTwilioPlaceCall:
    @pytest.mark.asyncio
    async def test_place_call_success(
        self, twilio_config: TelephonyConfig, call_request: PlaceCallRequest
    ) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(201, json={"sid": "CA_TEST_CALL_SID_123", "status": "queued"})

        adapter = adapter_with(handler, twilio_config)
        response = await adapter.place_call(call_request)

        assert response.carrier_call_id == "CA_TEST_CALL_SID_123"
        assert response.status == CallStatus.QUEUED
        assert response.raw_response["sid"] == "CA_TEST_CALL_SID_123"

        assert len(seen) == 1
        request = seen[0]
        assert str(request.url) == (
            "https://api.twilio.com/2010-04-01/Accounts/AC_TEST_ACCOUNT_SID/Calls.json"
        )
        expected_auth = base64.b64encode(b"AC_TEST_ACCOUNT_SID:test_auth_token_12345").decode()
        assert request.headers["authorization"] == f"Basic {expected_auth}"

        form = parse_qs(request.content.decode())
        assert form["To"] == ["+14155551234"]
        assert form["From"] == ["+14155550000"]
        assert form["StatusCallback"] == ["https://example.com/call-status"]
        assert form["StatusCallbackMethod"] == ["POST"]
        assert form["StatusCallbackEvent"] == ["initiated", "ringing", "answered", "completed"]
        assert form["Twiml"] == [
            '<Response><Connect><Stream url="wss://voice.test/join/uv-1?token=a&amp;b=c"/>'
            "</Connect></Response>"
        ]

    @pytest.mark.asyncio
    async def test_place_call_api_error(
        self, twilio_config: TelephonyConfig, call_request: PlaceCallRequest
    ) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"code": 21211, "message": "Invalid 'To' Phone Number"})

        adapter = adapter_with(handler, twilio_config)

        with pytest.raises(TelephonyProviderError) as exc_info:
            await adapter.place_call(call_request)

        assert exc_info.value.error_code == "21211"
        assert "Invalid" in exc_info.value.message
        assert exc_info.value.provider_response["code"] == 21211

    @pytest.mark.asyncio
    async def test_place_call_http_error(
        self, twilio_config: TelephonyConfig, call_request: PlaceCallRequest
    ) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Connection refused")

        adapter = adapter_with(handler, twilio_config)

        with pytest.raises(TelephonyProviderError) as exc_info:
            await adapter.place_call(call_request)

        assert exc_info.value.error_code == "HTTP_ERROR"

    @pytest.mark.asyncio
    async def test_place_call_missing_sid(
        self, twilio_config: TelephonyConfig, call_request: PlaceCallRequest
    ) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(201, json={"status": "queued"})

        adapter = adapter_with(handler, twilio_config)

        with pytest.raises(TelephonyProviderError) as exc_info:
            await adapter.place_call(call_request)

        assert exc_info.value.error_code == "BAD_RESPONSE"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("status_code", "body"),
        [
            (201, {"sid": "", "status": "queued"}),
            (201, {"sid": None}),
            (201, ["unexpected"]),
            (200, "CA123"),
        ],
    )
    async def test_place_call_malformed_success_body(
        self,
        twilio_config: TelephonyConfig,
        call_request: PlaceCallRequest,
        status_code: int,
        body,
    ) -> None:
        adapter = adapter_with(lambda r: httpx.Response(status_code, json=body), twilio_config)

        with pytest.raises(TelephonyProviderError) as exc_info:
            await adapter.place_call(call_request)

        assert exc_info.value.error_code == "BAD_RESPONSE"

    @pytest.mark.asyncio
    async def test_place_call_error_with_list_body(
        self, twilio_config: TelephonyConfig, call_request: PlaceCallRequest
    ) -> None:
        body = [{"code": 21211, "message": "Invalid 'To' Phone Number"}]
        adapter = adapter_with(lambda r: httpx.Response(400, json=body), twilio_config)

        with pytest.raises(TelephonyProviderError) as exc_info:
            await adapter.place_call(call_request)

        assert exc_info.value.error_code == "400"
        assert exc_info.value.message == "Call placement failed"
        assert exc_info.value.provider_response == {"body": body}

    @pytest.mark.asyncio
    async def test_close_keeps_injected_client_open(self, twilio_config: TelephonyConfig) -> None:
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        adapter = TwilioAdapter(config=twilio_config, http_client=client)

        await adapter.close()

        assert client.is_closed is False
        await client.aclose()


class TestTwilioStatusCallback:
    def test_parse_completed(self) -> None:
        event = parse_twilio_status_form(
            {
                "CallSid": "CA123",
                "CallStatus": "completed",
                "CallDuration": "42",
                "Timestamp": "Mon, 04 Mar 2024 14:05:00 +0000",
                "RecordingUrl": "https://api.twilio.com/rec/RE1",
            }
        )

        assert event.carrier_call_id == "CA123"
        assert event.status == CallStatus.COMPLETED
        assert event.status.is_terminal is True
        assert event.duration_seconds == 42
        assert event.timestamp == "Mon, 04 Mar 2024 14:05:00 +0000"
        assert event.recording_url == "https://api.twilio.com/rec/RE1"

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("initiated", CallStatus.INITIATED),
            ("ringing", CallStatus.RINGING),
            ("answered", CallStatus.IN_PROGRESS),
            ("in-progress", CallStatus.IN_PROGRESS),
            ("no-answer", CallStatus.NO_ANSWER),
            ("busy", CallStatus.BUSY),
            ("something-new", CallStatus.UNKNOWN),
        ],
    )
    def test_status_mapping(self, raw: str, expected: CallStatus) -> None:
        event = parse_twilio_status_form({"CallSid": "CA1", "CallStatus": raw})

        assert event.status == expected
        assert event.raw_status == raw
        assert event.status.is_terminal is False

    def test_missing_call_sid(self) -> None:
        with pytest.raises(WebhookParseError) as exc_info:
            parse_twilio_status_form({"CallStatus": "completed"})

        assert exc_info.value.error_code == "MISSING_CALL_SID"

    def test_invalid_duration_is_ignored(self) -> None:
        event = parse_twilio_status_form({"CallSid": "CA1", "CallStatus": "completed", "CallDuration": "n/a"})

        assert event.duration_seconds is None
        assert event.timestamp is None
        assert event.recording_url is None


class TestStreamTwiml:
    def test_escapes_url(self) -> None:
        assert build_stream_twiml('wss://x/?a=1&b="2"') == (
            '<Response><Connect><Stream url="wss://x/?a=1&amp;b=&quot;2&quot;"/></Connect></Response>'
        )

    def test_escapes_markup_characters(self) -> None:
        assert build_stream_twiml("wss://x/?q=<a>") == (
            '<Response><Connect><Stream url="wss://x/?q=&lt;a&gt;"/></Connect></Response>'
        )
