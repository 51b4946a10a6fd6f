"""
FastAPI application entry point.
"""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from callrelay.calls.artifacts import ArtifactFetcher
from callrelay.calls.notifier import NotificationDispatcher
from callrelay.calls.orchestrator import CallOrchestrator
from callrelay.calls.registry import CallRegistry
from callrelay.calls.router import router as calls_router
from callrelay.config import Settings, get_settings
from callrelay.shared.exceptions import CallInitiationError
from callrelay.shared.logging import get_logger, setup_logging
from callrelay.telephony.config import TelephonyConfig, get_telephony_config
from callrelay.telephony.factory import build_telephony_provider
from callrelay.telephony.interface import TelephonyProvider
from callrelay.telephony.public_url import PublicUrlResolver
from callrelay.voice.client import UltravoxClient
from callrelay.voice.config import VoiceConfig, get_voice_config
from callrelay.voice.prompts import PromptStore
from callrelay.voice.router import router as prompt_router

logger = get_logger(__name__)


@dataclass
class Services:
    """Long-lived collaborators shared by the request handlers."""

    settings: Settings
    orchestrator: CallOrchestrator
    telephony_provider: TelephonyProvider
    prompt_store: PromptStore
    voice_client: UltravoxClient
    dispatcher: NotificationDispatcher

    async def aclose(self) -> None:
        await self.orchestrator.wait_for_pending()
        await self.dispatcher.close()
        await self.voice_client.close()
        await self.telephony_provider.close()


def build_services(
    settings: Settings | None = None,
    telephony_cfg: TelephonyConfig | None = None,
    voice_cfg: VoiceConfig | None = None,
) -> Services:
    """Wire the call pipeline from configuration."""
    settings = settings or get_settings()
    telephony_cfg = telephony_cfg or get_telephony_config()
    voice_cfg = voice_cfg or get_voice_config()

    voice_client = UltravoxClient(voice_cfg, timeout_seconds=settings.http_timeout_seconds)
    telephony_provider = build_telephony_provider(telephony_cfg)
    fetcher = ArtifactFetcher(
        voice_client,
        recording_max_attempts=settings.recording_max_attempts,
        recording_retry_delay_seconds=settings.recording_retry_delay_seconds,
        transcript_max_pages=settings.transcript_max_pages,
    )
    dispatcher = NotificationDispatcher(
        fetcher,
        webhook_url=settings.make_webhook_url,
        origin_number=telephony_cfg.twilio_from_number,
        timeout_seconds=settings.http_timeout_seconds,
    )
    prompt_store = PromptStore(settings.prompt_file)
    orchestrator = CallOrchestrator(
        voice=voice_client,
        telephony=telephony_provider,
        registry=CallRegistry(ttl_seconds=settings.registry_ttl_seconds),
        dispatcher=dispatcher,
        prompts=prompt_store,
        public_url=PublicUrlResolver(telephony_cfg),
        origin_number=telephony_cfg.twilio_from_number,
        status_callback_events=telephony_cfg.status_callback_events,
    )
    return Services(
        settings=settings,
        orchestrator=orchestrator,
        telephony_provider=telephony_provider,
        prompt_store=prompt_store,
        voice_client=voice_client,
        dispatcher=dispatcher,
    )


async def _registry_sweeper(registry: CallRegistry, interval_seconds: float) -> None:
    """Periodically drop expired registry entries."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            registry.sweep()
        except Exception:
            logger.exception("Registry sweep failed")


def create_app(services: Services | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        services: Prebuilt collaborators; built from the environment at
            startup when omitted.
    """
    settings = services.settings if services else get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        setup_logging(settings.log_level)
        svc = services or build_services(settings)

        app.state.services = svc
        app.state.orchestrator = svc.orchestrator
        app.state.telephony_provider = svc.telephony_provider
        app.state.prompt_store = svc.prompt_store

        logger.info(
            "Application starting",
            extra={
                "env": settings.app_env,
                "webhook_configured": bool(settings.make_webhook_url),
            },
        )

        sweeper: asyncio.Task[None] | None = None
        if settings.registry_ttl_seconds > 0:
            sweeper = asyncio.create_task(
                _registry_sweeper(svc.orchestrator.registry, settings.registry_sweep_interval_seconds)
            )

        yield

        logger.info("Shutting down application")
        if sweeper is not None:
            sweeper.cancel()
            try:
                await sweeper
            except asyncio.CancelledError:
                pass

        await svc.aclose()
        logger.info("Application shutdown complete")

    app = FastAPI(
        title="callrelay",
        description="Outbound AI voice calls with post-call reporting",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    @app.exception_handler(CallInitiationError)
    async def _call_initiation_failed(_: Request, exc: CallInitiationError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "error": exc.message, "stage": exc.stage},
        )

    app.include_router(calls_router)
    app.include_router(prompt_router)

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        return {"status": "healthy"}

    return app


app = create_app()


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    settings = get_settings()
    uvicorn.run("callrelay.main:app", host=settings.host, port=settings.port)
