"""
Pytest configuration and shared fixtures.

Every outbound HTTP exchange is served by ``httpx.MockTransport`` or by the
in-memory fakes below; no test touches the network.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

import httpx
import pytest

from callrelay.calls.artifacts import ArtifactFetcher
from callrelay.calls.models import CallRequest, RegistryEntry
from callrelay.calls.notifier import NotificationDispatcher
from callrelay.calls.orchestrator import CallOrchestrator
from callrelay.calls.registry import CallRegistry
from callrelay.shared.exceptions import VoiceProviderError
from callrelay.telephony.config import ProviderType, TelephonyConfig
from callrelay.telephony.mock_adapter import MockTelephonyAdapter
from callrelay.telephony.public_url import PublicUrlResolver
from callrelay.voice.models import MessagePage, RecordingProbe, TranscriptMessage, VoiceSession
from callrelay.voice.prompts import PromptStore

WEBHOOK_URL = "https://hook.make.test/abc123"
ORIGIN_NUMBER = "+15550000000"


class FakeVoiceProvider:
    """In-memory voice provider: sessions, recording probes and message pages."""

    def __init__(self) -> None:
        self.prompts: list[str] = []
        self.fail_create: VoiceProviderError | None = None
        self.probes: list[RecordingProbe | Exception] = []
        self.pages: list[MessagePage | Exception] = []
        self.probe_calls = 0
        self.cursors: list[str | None] = []
        self._next_id = 1

    async def close(self) -> None:
        return None

    async def create_session(self, system_prompt: str) -> VoiceSession:
        self.prompts.append(system_prompt)
        if self.fail_create is not None:
            raise self.fail_create
        provider_call_id = f"uv-{self._next_id}"
        self._next_id += 1
        return VoiceSession(
            provider_call_id=provider_call_id,
            join_url=f"wss://voice.test/join/{provider_call_id}",
            created_at=datetime.now(timezone.utc),
        )

    async def probe_recording(self, provider_call_id: str) -> RecordingProbe:
        self.probe_calls += 1
        if not self.probes:
            return RecordingProbe(status_code=200, redirected=False, url="")
        item = self.probes.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    async def list_messages(self, provider_call_id: str, cursor: str | None = None) -> MessagePage:
        self.cursors.append(cursor)
        if not self.pages:
            return MessagePage(messages=[])
        item = self.pages.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def page(*messages: tuple[str, str], next_cursor: str | None = None) -> MessagePage:
    return MessagePage(
        messages=[TranscriptMessage(role=role, text=text) for role, text in messages],
        next_cursor=next_cursor,
    )


def not_ready() -> RecordingProbe:
    return RecordingProbe(status_code=200, redirected=False, url="https://voice.test/recording")


def ready(url: str) -> RecordingProbe:
    return RecordingProbe(status_code=200, redirected=True, url=url)


class WebhookRecorder:
    """MockTransport handler recording every downstream POST."""

    def __init__(self, status_code: int = 200, error: Exception | None = None) -> None:
        self.status_code = status_code
        self.error = error
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status_code, json={"accepted": True})

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


@pytest.fixture
def voice() -> FakeVoiceProvider:
    return FakeVoiceProvider()


@pytest.fixture
def webhook() -> WebhookRecorder:
    return WebhookRecorder()


@pytest.fixture
def fetcher(voice: FakeVoiceProvider) -> ArtifactFetcher:
    return ArtifactFetcher(voice, recording_max_attempts=3, recording_retry_delay_seconds=0)


@pytest.fixture
def dispatcher(fetcher: ArtifactFetcher, webhook: WebhookRecorder) -> NotificationDispatcher:
    return NotificationDispatcher(
        fetcher,
        webhook_url=WEBHOOK_URL,
        origin_number=ORIGIN_NUMBER,
        http_client=webhook.client(),
    )


@pytest.fixture
def telephony_config() -> TelephonyConfig:
    return TelephonyConfig(
        provider_type=ProviderType.MOCK,
        twilio_from_number=ORIGIN_NUMBER,
        webhook_base_url="https://relay.example.com/",
    )


@pytest.fixture
def telephony() -> MockTelephonyAdapter:
    return MockTelephonyAdapter()


@pytest.fixture
def registry() -> CallRegistry:
    return CallRegistry()


@pytest.fixture
def prompt_store(tmp_path) -> PromptStore:
    return PromptStore(tmp_path / "prompt.json")


@pytest.fixture
def orchestrator(
    voice: FakeVoiceProvider,
    telephony: MockTelephonyAdapter,
    registry: CallRegistry,
    dispatcher: NotificationDispatcher,
    prompt_store: PromptStore,
    telephony_config: TelephonyConfig,
) -> CallOrchestrator:
    return CallOrchestrator(
        voice=voice,
        telephony=telephony,
        registry=registry,
        dispatcher=dispatcher,
        prompts=prompt_store,
        public_url=PublicUrlResolver(telephony_config),
        origin_number=ORIGIN_NUMBER,
        status_callback_events=telephony_config.status_callback_events,
    )


@pytest.fixture
def make_entry() -> Callable[..., RegistryEntry]:
    def _make(
        destination: str = "+15551234567",
        provider_call_id: str | None = "uv-1",
        **variables: Any,
    ) -> RegistryEntry:
        session = None
        if provider_call_id:
            session = VoiceSession(
                provider_call_id=provider_call_id,
                join_url=f"wss://voice.test/join/{provider_call_id}",
                created_at=datetime.now(timezone.utc),
            )
        return RegistryEntry(
            original_request=CallRequest(destination=destination, variables=dict(variables)),
            session=session,
        )

    return _make
