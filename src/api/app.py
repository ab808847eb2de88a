"""
FastAPI application factory.

``create_app()`` assembles the application with CORS, error handlers,
routers, and the health endpoint. The lifespan builds the recording session
from settings (unless one is injected), starts loading the recognition
engine in the background, and closes the session on shutdown. The
module-level ``app`` instance allows ``uvicorn src.api.app:app --reload``.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from src.api import websocket
from src.api.middleware.error_handler import register_error_handlers
from src.api.routes import session as session_routes
from src.core.config import Settings, get_settings
from src.core.exceptions import EngineNotReadyError
from src.core.models import HealthResponse
from src.services.orchestrator import RecordingSession, create_session
from src.services.transcription.engine import EngineHandle

logger = logging.getLogger(__name__)


async def _load_engine(engine: EngineHandle) -> None:
    try:
        await engine.load()
    except EngineNotReadyError as exc:
        logger.error("%s; POST /api/v1/engine/load to retry", exc.detail)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if app.state.session is None:
        app.state.session = create_session(app.state.settings)
    session: RecordingSession = app.state.session

    load_task = asyncio.create_task(_load_engine(session.engine))
    try:
        yield
    finally:
        if not load_task.done():
            load_task.cancel()
        await session.close()
        logger.info("Recording session closed")


def create_app(
    session: RecordingSession | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    """Build and return a fully configured FastAPI application.

    Args:
        session: Pre-built controller (tests inject one with fake devices).
        settings: Settings to build the controller from; defaults to ``get_settings()``.
    """
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title="LiveScribe",
        description="Streaming microphone transcription with a local Whisper engine.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.session = session

    # -- CORS --
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:5173",  # Vite dev frontend
            "http://localhost:3000",  # Dev frontend
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -- Error handlers --
    register_error_handlers(app)

    # -- Health check (root-level, not under /api/v1) --
    @app.get("/health", response_model=HealthResponse, tags=["system"])
    async def health(request: Request) -> HealthResponse:
        current = request.app.state.session
        engine_state = current.engine.state if current is not None else "unloaded"
        return HealthResponse(engine_state=engine_state, timestamp=datetime.now(UTC))

    # -- REST routes --
    app.include_router(session_routes.router, prefix="/api/v1")

    # -- WebSocket --
    app.include_router(websocket.router)

    return app


app = create_app()
