"""
Downstream notification of completed calls.

Each dispatch performs exactly one POST. There is no deduplication: if the
carrier redelivers a completed callback, the downstream webhook receives the
report again (at-least-once, not exactly-once).
"""

import asyncio

import httpx

from callrelay.calls.artifacts import ArtifactFetcher, Transcript
from callrelay.calls.models import CallDetails, NotificationPayload, RegistryEntry
from callrelay.shared.logging import get_logger
from callrelay.telephony.interface import StatusEvent

logger = get_logger(__name__)


class NotificationDispatcher:
    """Builds the post-call report and delivers it to the automation webhook."""

    def __init__(
        self,
        fetcher: ArtifactFetcher,
        webhook_url: str,
        origin_number: str = "",
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        self._fetcher = fetcher
        self._webhook_url = webhook_url
        self._origin_number = origin_number
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

    async def _fetch_artifacts(self, provider_call_id: str | None) -> tuple[str | None, Transcript | None]:
        if not provider_call_id:
            return None, None
        recording_url, transcript = await asyncio.gather(
            self._fetcher.fetch_recording(provider_call_id),
            self._fetcher.fetch_transcript(provider_call_id),
            return_exceptions=True,
        )
        # a failed artifact only nulls its own field
        if isinstance(recording_url, BaseException):
            logger.error(
                "Recording retrieval failed",
                extra={"provider_call_id": provider_call_id, "error": repr(recording_url)},
            )
            recording_url = None
        if isinstance(transcript, BaseException):
            logger.error(
                "Transcript retrieval failed",
                extra={"provider_call_id": provider_call_id, "error": repr(transcript)},
            )
            transcript = None
        return recording_url, transcript

    async def build_payload(
        self,
        carrier_call_id: str,
        status: str,
        entry: RegistryEntry | None,
        event: StatusEvent,
    ) -> NotificationPayload:
        """Merge registry data, the callback and fetched artifacts."""
        provider_call_id = entry.provider_call_id if entry else None
        recording_url, transcript = await self._fetch_artifacts(provider_call_id)

        return NotificationPayload(
            carrier_call_id=carrier_call_id,
            status=status,
            provider_call_id=provider_call_id,
            # provider recording is authoritative; the carrier's URL is a fallback
            recording_url=recording_url or event.recording_url,
            transcript=transcript.text if transcript else None,
            transcript_truncated=transcript.truncated if transcript else False,
            call_details=CallDetails(
                duration=event.duration_seconds,
                timestamp=event.timestamp,
                recording_url=event.recording_url,
                destination=entry.original_request.destination if entry else None,
                origin=self._origin_number or None,
            ),
            original_request=entry.original_request.to_dict() if entry else None,
        )

    async def send(self, payload: NotificationPayload) -> bool:
        """POST one payload; True only on a 2xx answer. Never raises."""
        if not self._webhook_url:
            logger.error("Downstream webhook URL not configured; report dropped")
            return False

        try:
            response = await self._get_client().post(self._webhook_url, json=payload.to_json_dict())
        except httpx.HTTPError as e:
            logger.error("Downstream notification failed", extra={"error": str(e)})
            return False

        if not response.is_success:
            logger.error(
                "Downstream notification rejected",
                extra={"status_code": response.status_code},
            )
            return False

        logger.info("Downstream notification delivered", extra={"status_code": response.status_code})
        return True

    async def dispatch(
        self,
        carrier_call_id: str,
        status: str,
        entry: RegistryEntry | None,
        event: StatusEvent,
    ) -> bool:
        """Assemble and deliver the report for a completed call.

        The caller has already decided the call is complete; no status
        filtering happens here.

        Returns:
            True if the downstream webhook answered 2xx.
        """
        try:
            payload = await self.build_payload(carrier_call_id, status, entry, event)
        except Exception:
            logger.exception("Failed to build notification payload", extra={"call_sid": carrier_call_id})
            return False

        logger.info(
            "Sending post-call report",
            extra={
                "call_sid": carrier_call_id,
                "status": status,
                "provider_call_id": payload.provider_call_id,
                "has_recording": payload.recording_url is not None,
                "has_transcript": payload.transcript is not None,
                "to": payload.call_details.destination,
                "from": payload.call_details.origin,
            },
        )
        return await self.send(payload)
