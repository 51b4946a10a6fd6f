"""
Post-call artifact retrieval: recording URL and speaker-labelled transcript.

Both operations are soft-failing: they return None instead of raising, so a
missing artifact only degrades the downstream report.
"""

import asyncio
from dataclasses import dataclass
from typing import Protocol

import httpx

from callrelay.shared.exceptions import VoiceProviderError
from callrelay.shared.logging import get_logger
from callrelay.voice.models import ROLE_AGENT, ROLE_USER, MessagePage, RecordingProbe

logger = get_logger(__name__)

SPEAKER_LABELS: dict[str, str] = {
    ROLE_USER: "Customer",
    ROLE_AGENT: "Agent",
}


class ArtifactSource(Protocol):
    """Voice provider operations used for artifact retrieval."""

    async def probe_recording(self, provider_call_id: str) -> RecordingProbe:
        ...

    async def list_messages(self, provider_call_id: str, cursor: str | None = None) -> MessagePage:
        ...


@dataclass(frozen=True)
class Transcript:
    text: str
    message_count: int
    truncated: bool = False


class ArtifactFetcher:
    """Fetches a completed call's recording and transcript."""

    def __init__(
        self,
        source: ArtifactSource,
        recording_max_attempts: int = 3,
        recording_retry_delay_seconds: float = 5.0,
        transcript_max_pages: int = 50,
    ) -> None:
        if recording_max_attempts < 1:
            raise ValueError("recording_max_attempts must be >= 1")
        if transcript_max_pages < 1:
            raise ValueError("transcript_max_pages must be >= 1")
        self._source = source
        self._recording_max_attempts = recording_max_attempts
        self._recording_retry_delay_seconds = recording_retry_delay_seconds
        self._transcript_max_pages = transcript_max_pages

    async def fetch_recording(self, provider_call_id: str) -> str | None:
        """Return the final recording URL, or None once all attempts are spent.

        A 2xx answer without a redirect, a non-2xx answer and a transport
        error all mean "not ready yet" and trigger a retry after a fixed delay.
        """
        for attempt in range(1, self._recording_max_attempts + 1):
            if attempt > 1:
                logger.info(
                    "Waiting before recording retry",
                    extra={"delay_seconds": self._recording_retry_delay_seconds},
                )
                await asyncio.sleep(self._recording_retry_delay_seconds)

            logger.info(
                "Fetching recording URL",
                extra={
                    "provider_call_id": provider_call_id,
                    "attempt": attempt,
                    "max_attempts": self._recording_max_attempts,
                },
            )

            try:
                probe = await self._source.probe_recording(provider_call_id)
            except httpx.HTTPError as e:
                logger.warning(
                    "Error fetching recording",
                    extra={"provider_call_id": provider_call_id, "attempt": attempt, "error": str(e)},
                )
                continue

            if probe.recording_url:
                logger.info(
                    "Got recording URL",
                    extra={"provider_call_id": provider_call_id, "attempt": attempt},
                )
                return probe.recording_url

            if probe.ok:
                logger.info("No redirect received, recording not ready", extra={"attempt": attempt})
            else:
                logger.warning(
                    "Recording request failed",
                    extra={"status_code": probe.status_code, "attempt": attempt},
                )

        logger.warning(
            "Failed to get recording URL after all attempts",
            extra={"provider_call_id": provider_call_id},
        )
        return None

    async def fetch_transcript(self, provider_call_id: str) -> Transcript | None:
        """Read every message page and build the transcript.

        Pages are followed through their cursor until none remains or the page
        cap is reached, in which case the result is marked truncated. Any
        error discards what was read so far and yields None.
        """
        lines: list[str] = []
        cursor: str | None = None
        pages = 0

        logger.info("Fetching transcript", extra={"provider_call_id": provider_call_id})
        try:
            while True:
                page = await self._source.list_messages(provider_call_id, cursor)
                pages += 1

                for message in page.messages:
                    speaker = SPEAKER_LABELS.get(message.role)
                    if speaker is None or not message.text:
                        continue
                    lines.append(f"{speaker}: {message.text}")

                cursor = page.next_cursor
                if not cursor:
                    break
                if pages >= self._transcript_max_pages:
                    logger.warning(
                        "Transcript truncated at page cap",
                        extra={"provider_call_id": provider_call_id, "pages": pages},
                    )
                    return Transcript(text="\n".join(lines), message_count=len(lines), truncated=True)
        except (httpx.HTTPError, VoiceProviderError, ValueError, TypeError, AttributeError) as e:
            logger.error(
                "Error fetching transcript",
                extra={"provider_call_id": provider_call_id, "pages": pages, "error": str(e)},
            )
            return None

        logger.info(
            "Transcript compiled",
            extra={"provider_call_id": provider_call_id, "pages": pages, "messages": len(lines)},
        )
        return Transcript(text="\n".join(lines), message_count=len(lines))
