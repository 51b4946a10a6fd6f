"""
FastAPI router for call initiation and carrier status callbacks.

Key constraints:
- the carrier must always get a prompt acknowledgment
- no downstream processing happens inside the callback request
"""

from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, Request, Response, status
from fastapi.responses import JSONResponse, PlainTextResponse

from callrelay.calls.models import CallRequest
from callrelay.calls.orchestrator import CallOrchestrator
from callrelay.shared.logging import get_logger
from callrelay.telephony.interface import TelephonyProvider, WebhookParseError

logger = get_logger(__name__)

router = APIRouter(tags=["calls"])


def get_orchestrator(request: Request) -> CallOrchestrator:
    return request.app.state.orchestrator


def get_telephony_provider(request: Request) -> TelephonyProvider:
    return request.app.state.telephony_provider


@router.post("/outbound-call")
async def outbound_call(
    body: Annotated[dict[str, Any], Body()],
    orchestrator: Annotated[CallOrchestrator, Depends(get_orchestrator)],
) -> Any:
    call_request = CallRequest.from_body(body)
    if not call_request.destination:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Phone number is required"},
        )

    # CallInitiationError is mapped to a 500 by the app exception handler
    initiated = await orchestrator.initiate_call(call_request)
    return {"success": True, "callSid": initiated.carrier_call_id}


@router.post("/call-status")
async def call_status(
    request: Request,
    orchestrator: Annotated[CallOrchestrator, Depends(get_orchestrator)],
    provider: Annotated[TelephonyProvider, Depends(get_telephony_provider)],
) -> Response:
    try:
        form = dict(await request.form())
    except Exception:
        logger.exception("Unreadable status callback body")
        form = {}

    payload = {k: v for k, v in form.items() if isinstance(v, str)}

    try:
        event = provider.parse_status_callback(payload)
    except WebhookParseError:
        logger.error("No CallSid received in webhook", extra={"payload_keys": sorted(payload)})
        return Response(status_code=status.HTTP_400_BAD_REQUEST)

    orchestrator.on_status_callback(event)
    return PlainTextResponse("OK", status_code=status.HTTP_200_OK)


@router.get("/test")
async def test_endpoint() -> dict[str, str]:
    return {"status": "Server is running!"}
