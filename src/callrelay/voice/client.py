"""
Ultravox voice-session provider client.

Three operations are used by the call pipeline:
- create_session: start a voice session and obtain its join URL
- probe_recording: ask for the call recording (redirect when ready)
- list_messages: read one page of the call's message history
"""

from datetime import datetime, timezone
from typing import Any
from urllib.parse import parse_qs, urlparse

import httpx

from callrelay.shared.exceptions import VoiceProviderError
from callrelay.shared.logging import get_logger
from callrelay.voice.config import VoiceConfig, get_voice_config
from callrelay.voice.models import (
    MessagePage,
    RecordingProbe,
    TranscriptMessage,
    VoiceSession,
    normalize_role,
)

logger = get_logger(__name__)


def cursor_from_next_link(next_link: str | None) -> str | None:
    """Extract the opaque ``cursor`` query parameter from a ``next`` link."""
    if not next_link:
        return None
    values = parse_qs(urlparse(next_link).query).get("cursor")
    if not values or not values[0]:
        return None
    return values[0]


def _parse_created(value: Any) -> datetime:
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            pass
    return datetime.now(timezone.utc)


class UltravoxClient:
    """Async HTTP client for the Ultravox REST API."""

    def __init__(
        self,
        config: VoiceConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        self._config = config or get_voice_config()
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

    def _url(self, path: str) -> str:
        return f"{self._config.api_base_url.rstrip('/')}{path}"

    def _headers(self) -> dict[str, str]:
        return {"X-API-Key": self._config.api_key, "Accept": "application/json"}

    async def create_session(self, system_prompt: str) -> VoiceSession:
        """Create a voice session for an outbound call.

        Args:
            system_prompt: Fully rendered instructions for the agent.

        Returns:
            The session with its provider call id and join URL.

        Raises:
            VoiceProviderError: On transport errors, non-2xx responses or a
                response lacking ``callId``/``joinUrl``.
        """
        body = {**self._config.session_template(), "systemPrompt": system_prompt}
        logger.debug("Creating voice session", extra={"model": body["model"], "voice": body["voice"]})

        try:
            response = await self._get_client().post(
                self._url("/calls"),
                json=body,
                headers=self._headers(),
            )
        except httpx.HTTPError as e:
            logger.exception("HTTP error during voice session creation")
            raise VoiceProviderError(message=f"HTTP error: {e!s}", error_code="HTTP_ERROR") from e

        logger.info("Voice provider response", extra={"status_code": response.status_code})

        try:
            data = response.json()
        except ValueError as e:
            raise VoiceProviderError(
                message="Malformed voice provider response",
                error_code=str(response.status_code),
            ) from e

        if not isinstance(data, dict):
            data = {"body": data}

        if response.status_code >= 400:
            raise VoiceProviderError(
                message=str(data.get("detail") or f"Voice session creation failed ({response.status_code})"),
                error_code=str(response.status_code),
                provider_response=data,
            )

        call_id = data.get("callId")
        join_url = data.get("joinUrl")
        if not call_id or not join_url:
            raise VoiceProviderError(
                message="No joinUrl received from voice provider",
                error_code="MISSING_JOIN_URL",
                provider_response=data,
            )

        return VoiceSession(
            provider_call_id=call_id,
            join_url=join_url,
            created_at=_parse_created(data.get("created")),
            raw_response=data,
        )

    async def probe_recording(self, provider_call_id: str) -> RecordingProbe:
        """Request the call recording once, following redirects.

        Raises:
            httpx.HTTPError: On transport failures.
        """
        response = await self._get_client().get(
            self._url(f"/calls/{provider_call_id}/recording"),
            headers={"X-API-Key": self._config.api_key},
            follow_redirects=True,
        )
        return RecordingProbe(
            status_code=response.status_code,
            redirected=bool(response.history),
            url=str(response.url),
        )

    async def list_messages(self, provider_call_id: str, cursor: str | None = None) -> MessagePage:
        """Read one page of the call's messages.

        Raises:
            VoiceProviderError: On non-2xx responses.
            httpx.HTTPError: On transport failures.
            ValueError: When the body is not JSON.
        """
        params = {"cursor": cursor} if cursor else None
        response = await self._get_client().get(
            self._url(f"/calls/{provider_call_id}/messages"),
            params=params,
            headers=self._headers(),
        )
        if response.status_code >= 400:
            raise VoiceProviderError(
                message=f"HTTP error! status: {response.status_code}",
                error_code=str(response.status_code),
            )

        data = response.json()
        if not isinstance(data, dict):
            raise ValueError("Unexpected message list body")
        messages = [
            TranscriptMessage(role=normalize_role(item.get("role")), text=item.get("text") or "")
            for item in data.get("results") or []
        ]
        return MessagePage(messages=messages, next_cursor=cursor_from_next_link(data.get("next")))
