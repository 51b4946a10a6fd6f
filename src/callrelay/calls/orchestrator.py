"""
Call lifecycle orchestration.

Per call: Created -> Bridged -> (Ringing|Answered)* -> Completed. Only call
creation and completion are acted upon; intermediate statuses are logged.
"""

import asyncio
from datetime import datetime, timezone
from typing import Protocol

from callrelay.calls.models import CallRequest, InitiatedCall, RegistryEntry
from callrelay.calls.notifier import NotificationDispatcher
from callrelay.calls.registry import CallRegistry
from callrelay.shared.exceptions import (
    CallInitiationError,
    TelephonyProviderError,
    VoiceProviderError,
)
from callrelay.shared.logging import correlation_id_var, get_logger
from callrelay.telephony.interface import (
    PlaceCallRequest,
    StatusEvent,
    TelephonyProvider,
)
from callrelay.telephony.public_url import PublicUrlResolver
from callrelay.voice.models import VoiceSession
from callrelay.voice.prompts import PromptStore, render_prompt

logger = get_logger(__name__)


class VoiceSessionFactory(Protocol):
    async def create_session(self, system_prompt: str) -> VoiceSession:
        ...


class CallOrchestrator:
    """Starts outbound calls and reacts to their status callbacks."""

    def __init__(
        self,
        voice: VoiceSessionFactory,
        telephony: TelephonyProvider,
        registry: CallRegistry,
        dispatcher: NotificationDispatcher,
        prompts: PromptStore,
        public_url: PublicUrlResolver,
        origin_number: str,
        status_callback_events: tuple[str, ...] = (),
    ) -> None:
        self._voice = voice
        self._telephony = telephony
        self._registry = registry
        self._dispatcher = dispatcher
        self._prompts = prompts
        self._public_url = public_url
        self._origin_number = origin_number
        self._status_callback_events = status_callback_events
        self._pending: set[asyncio.Task[bool]] = set()

    @property
    def registry(self) -> CallRegistry:
        return self._registry

    @property
    def pending_dispatches(self) -> int:
        return len(self._pending)

    async def initiate_call(self, request: CallRequest) -> InitiatedCall:
        """Create the voice session, place the carrier call and register it.

        Raises:
            CallInitiationError: If any step fails. Nothing is registered then.
        """
        if not request.destination:
            raise CallInitiationError("Phone number is required", stage="validation")

        logger.info(
            "Initiating outbound call",
            extra={"to": request.destination, "variables": sorted(request.variables)},
        )

        template = await self._prompts.get()
        system_prompt = render_prompt(template, request.variables)

        try:
            session = await self._voice.create_session(system_prompt)
        except VoiceProviderError as e:
            logger.error("Voice session creation failed", extra={"error": e.message, "error_code": e.error_code})
            raise CallInitiationError(e.message, stage="voice_session", cause=e) from e

        logger.info("Voice session created", extra={"provider_call_id": session.provider_call_id})

        try:
            callback_url = await self._public_url.status_callback_url()
            placed = await self._telephony.place_call(
                PlaceCallRequest(
                    to=request.destination,
                    from_number=self._origin_number,
                    stream_url=session.join_url,
                    status_callback_url=callback_url,
                    status_callback_events=self._status_callback_events,
                )
            )
        except TelephonyProviderError as e:
            logger.error(
                "Carrier call placement failed",
                extra={"provider_call_id": session.provider_call_id, "error": e.message, "error_code": e.error_code},
            )
            raise CallInitiationError(e.message, stage="carrier", cause=e) from e

        self._registry.put(
            placed.carrier_call_id,
            RegistryEntry(
                original_request=request,
                session=session,
                start_time=datetime.now(timezone.utc),
            ),
        )
        logger.info(
            "Outbound call bridged",
            extra={"call_sid": placed.carrier_call_id, "provider_call_id": session.provider_call_id},
        )
        return InitiatedCall(carrier_call_id=placed.carrier_call_id, provider_call_id=session.provider_call_id)

    def on_status_callback(self, event: StatusEvent) -> None:
        """Handle a status callback; returns immediately and never raises.

        For a completed call the report is dispatched in a background task so
        the carrier gets its acknowledgment without waiting on downstream I/O.
        """
        try:
            entry = self._registry.get(event.carrier_call_id)
            logger.info(
                "Processing call status update",
                extra={
                    "call_sid": event.carrier_call_id,
                    "status": event.status.value,
                    "duration": event.duration_seconds,
                    "has_stored_data": entry is not None,
                },
            )

            if not event.status.is_terminal:
                logger.info(
                    "Status is not completed, skipping notification",
                    extra={"call_sid": event.carrier_call_id, "status": event.raw_status or event.status.value},
                )
                return

            if entry is None:
                logger.warning("No stored data for completed call", extra={"call_sid": event.carrier_call_id})

            task = asyncio.create_task(self._run_dispatch(event, entry))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
        except Exception:
            logger.exception("Failed to process status callback", extra={"call_sid": event.carrier_call_id})

    async def _run_dispatch(self, event: StatusEvent, entry: RegistryEntry | None) -> bool:
        token = correlation_id_var.set(event.carrier_call_id)
        try:
            success = await self._dispatcher.dispatch(
                event.carrier_call_id,
                event.status.value,
                entry,
                event,
            )
        except Exception:
            logger.exception("Error in webhook notification")
            return False
        finally:
            correlation_id_var.reset(token)

        logger.info(
            "Downstream notification result",
            extra={"call_sid": event.carrier_call_id, "result": "Success" if success else "Failed"},
        )
        return success

    async def wait_for_pending(self) -> None:
        """Wait for every in-flight dispatch to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
