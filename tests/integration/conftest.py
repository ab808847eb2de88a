"""Integration test fixtures for LiveScribe.

Provides an application wired to a recording session with a scripted STT
provider and a queue capture device, plus an async HTTP client and a sync
TestClient (for WebSocket).
"""

import pytest
from httpx import ASGITransport, AsyncClient
from starlette.testclient import TestClient

from src.api.app import create_app
from src.core.config import Settings
from src.services.audio.capture import QueueCaptureDevice
from src.services.orchestrator import RecordingSession
from src.services.transcription.engine import EngineHandle


@pytest.fixture
def settings():
    return Settings(_env_file=None)


@pytest.fixture
def queue_device():
    """Capture device fed by the test (or by WebSocket clients)."""
    return QueueCaptureDevice()


@pytest.fixture
def recording_session(stt, queue_device):
    """Session over an engine that has not been loaded yet."""
    return RecordingSession(EngineHandle(stt), queue_device)


@pytest.fixture
def app(recording_session, settings):
    """Create a fresh FastAPI application around the test session."""
    return create_app(session=recording_session, settings=settings)


@pytest.fixture
async def async_client(app):
    """AsyncClient calling the app in-process (lifespan is not run)."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def test_client(app):
    """Synchronous TestClient for WebSocket tests (runs the lifespan)."""
    with TestClient(app) as c:
        c.post("/api/v1/engine/load")
        yield c
