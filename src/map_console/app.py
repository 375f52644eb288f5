from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from map_console.api.middleware.correlation_id import CorrelationIdMiddleware
from map_console.api.v1.routers import console, credentials, health, ws
from map_console.application.exceptions import (
    CaptureError,
    ChannelStateError,
    ConflictError,
    CredentialError,
    CredentialIssueError,
    MediaAccessError,
    NegotiationError,
    SessionTimeoutError,
    ValidationError,
)
from map_console.application.ports.clock import SystemClock
from map_console.application.ports.updates import UpdatePublisher
from map_console.config import settings
from map_console.domain.value_objects.enums import CaptureStrategy
from map_console.domain.value_objects.geo import LatLng, MapView
from map_console.infrastructure.maps.static_map import StaticMapImageSource
from map_console.infrastructure.openai.credentials import HttpCredentialProvider
from map_console.infrastructure.openai.session_issuer import RealtimeSessionIssuer
from map_console.infrastructure.openai.signaling import HttpSignalingClient
from map_console.infrastructure.realtime.aiortc_peer import AiortcPeerFactory
from map_console.infrastructure.ws.manager import ConnectionManager
from map_console.services.console_service import RealtimeConsole
from map_console.services.snapshot_capturer import SnapshotCapturer

logger = logging.getLogger(__name__)


def build_console(http_client: httpx.AsyncClient, publisher: UpdatePublisher) -> RealtimeConsole:
    clock = SystemClock()
    capturer = SnapshotCapturer(
        StaticMapImageSource(
            http_client,
            settings.STATIC_MAP_URL,
            settings.GOOGLE_MAPS_API_KEY,
            width=settings.STATIC_MAP_WIDTH,
            height=settings.STATIC_MAP_HEIGHT,
            scale=settings.STATIC_MAP_SCALE,
            map_type=settings.STATIC_MAP_TYPE,
        ),
        clock,
        view=MapView(
            center=LatLng(lat=settings.DEFAULT_LAT, lng=settings.DEFAULT_LNG),
            zoom=settings.DEFAULT_ZOOM,
        ),
        strategy=CaptureStrategy(settings.SNAPSHOT_STRATEGY),
        interval=settings.SNAPSHOT_INTERVAL_SECONDS,
        debounce=settings.SNAPSHOT_IDLE_DEBOUNCE_SECONDS,
        history_size=settings.SNAPSHOT_HISTORY_SIZE,
        timeout=settings.CAPTURE_TIMEOUT_SECONDS,
        enabled=settings.snapshots_enabled,
    )
    return RealtimeConsole(
        credentials=HttpCredentialProvider(http_client, settings.CREDENTIAL_URL),
        peer_factory=AiortcPeerFactory(
            device=settings.MICROPHONE_DEVICE,
            device_format=settings.MICROPHONE_FORMAT,
            sink=settings.REMOTE_AUDIO_SINK,
            sink_format=settings.REMOTE_AUDIO_FORMAT,
        ),
        signaling=HttpSignalingClient(http_client, settings.signaling_url),
        capturer=capturer,
        clock=clock,
        publisher=publisher,
        default_model=settings.OPENAI_REALTIME_MODEL,
        handshake_timeout=settings.HANDSHAKE_TIMEOUT_SECONDS,
        log_limit=settings.EVENT_LOG_LIMIT,
        warn_threshold=settings.PENDING_QUEUE_WARN_THRESHOLD,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle."""
    logger.info(
        "Map console ready (model=%s, snapshots=%s)",
        settings.OPENAI_REALTIME_MODEL,
        "on" if settings.snapshots_enabled else "off",
    )

    yield

    await app.state.console.aclose()
    if app.state.owns_http_client:
        await app.state.http_client.aclose()
    logger.info("Map console stopped")


def create_app(
    *,
    http_client: httpx.AsyncClient | None = None,
    realtime_console: RealtimeConsole | None = None,
) -> FastAPI:
    app = FastAPI(
        title="Realtime Map Console",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(CorrelationIdMiddleware)

    app.state.owns_http_client = http_client is None
    app.state.http_client = http_client or httpx.AsyncClient(timeout=httpx.Timeout(10.0))
    app.state.manager = ConnectionManager()
    app.state.issuer = RealtimeSessionIssuer(app.state.http_client, settings.sessions_url)
    app.state.console = realtime_console or build_console(app.state.http_client, app.state.manager)

    _register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(credentials.router)
    app.include_router(console.router)
    app.include_router(ws.router)

    public_dir = Path(settings.PUBLIC_DIR)
    if public_dir.is_dir():
        app.mount("/", StaticFiles(directory=public_dir, html=True), name="public")

    return app


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(CredentialIssueError)
    async def _credential_issue(_req: Request, exc: CredentialIssueError) -> JSONResponse:
        content: dict[str, str] = {"error": exc.detail}
        if exc.details is not None:
            content["details"] = exc.details
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(ConflictError)
    async def _conflict(_req: Request, exc: ConflictError) -> JSONResponse:
        return JSONResponse(status_code=409, content={"detail": exc.detail})

    @app.exception_handler(ChannelStateError)
    async def _channel_state(_req: Request, exc: ChannelStateError) -> JSONResponse:
        return JSONResponse(status_code=409, content={"detail": exc.detail})

    @app.exception_handler(ValidationError)
    async def _validation(_req: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": exc.detail})

    @app.exception_handler(SessionTimeoutError)
    async def _timeout(_req: Request, exc: SessionTimeoutError) -> JSONResponse:
        return JSONResponse(status_code=504, content={"detail": exc.detail})

    @app.exception_handler(NegotiationError)
    async def _negotiation(_req: Request, exc: NegotiationError) -> JSONResponse:
        return JSONResponse(status_code=502, content={"detail": exc.detail, "details": exc.details})

    @app.exception_handler(CredentialError)
    @app.exception_handler(MediaAccessError)
    @app.exception_handler(CaptureError)
    async def _upstream(_req: Request, exc: CredentialError | MediaAccessError | CaptureError) -> JSONResponse:
        return JSONResponse(status_code=502, content={"detail": exc.detail})
