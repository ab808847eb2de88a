"""Integration tests for the session and engine REST endpoints.

Exercises the FastAPI app through an async HTTP client: health, engine
loading, the start/stop command cycle, and the JSON error envelope for
commands issued in the wrong state.
"""

import logging

import pytest

from src.core.models import SessionPolicy
from src.services.orchestrator import RecordingSession
from src.services.transcription.engine import EngineHandle


@pytest.fixture
async def ready_client(async_client):
    """Client whose engine has been loaded through the API."""
    resp = await async_client.post("/api/v1/engine/load")
    assert resp.status_code == 200
    return async_client


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------


async def test_health_returns_200(async_client):
    """GET /health returns 200 with status, version, engine state, and timestamp."""
    resp = await async_client.get("/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ok"
    assert body["version"] == "0.1.0"
    assert body["engine_state"] == "unloaded"
    assert "timestamp" in body


async def test_health_reports_ready_engine(ready_client):
    resp = await ready_client.get("/health")
    assert resp.json()["engine_state"] == "ready"


async def test_cors_allows_dev_frontend(async_client):
    resp = await async_client.options(
        "/health",
        headers={
            "Origin": "http://localhost:5173",
            "Access-Control-Request-Method": "GET",
        },
    )
    assert resp.headers.get("access-control-allow-origin") == "http://localhost:5173"


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


async def test_engine_status_before_load(async_client):
    resp = await async_client.get("/api/v1/engine")
    assert resp.status_code == 200
    assert resp.json()["state"] == "unloaded"


async def test_engine_load(async_client):
    resp = await async_client.post("/api/v1/engine/load")
    body = resp.json()
    assert body["state"] == "ready"
    assert body["device"] == "cpu"


async def test_engine_load_failure(async_client, stt):
    stt.load_error = RuntimeError("model not found")
    resp = await async_client.post("/api/v1/engine/load")
    assert resp.status_code == 503
    assert resp.json()["code"] == "ENGINE_NOT_READY"

    resp = await async_client.get("/api/v1/engine")
    assert resp.json()["state"] == "failed"
    assert resp.json()["detail"] == "model not found"


# ---------------------------------------------------------------------------
# Session commands
# ---------------------------------------------------------------------------


async def test_session_snapshot(async_client):
    resp = await async_client.get("/api/v1/session")
    assert resp.status_code == 200
    body = resp.json()
    assert body["state"] == "idle"
    assert body["text"] == ""
    assert body["error"] == ""
    assert body["policy"] == "single_shot"


async def test_start_requires_ready_engine(async_client):
    resp = await async_client.post("/api/v1/session/start")
    assert resp.status_code == 503
    assert resp.json()["code"] == "ENGINE_NOT_READY"

    snapshot = (await async_client.get("/api/v1/session")).json()
    assert snapshot["error_kind"] == "engine_not_ready"


async def test_start_requires_audio_source(ready_client):
    """No producer is attached to the queue device."""
    resp = await ready_client.post("/api/v1/session/start")
    assert resp.status_code == 503
    assert resp.json()["code"] == "DEVICE_UNAVAILABLE"


async def test_record_and_transcribe(ready_client, queue_device, recording_session, sample_pcm_bytes):
    queue_device.attach()
    resp = await ready_client.post("/api/v1/session/start")
    assert resp.status_code == 200
    assert resp.json()["state"] == "recording"

    queue_device.feed(sample_pcm_bytes)
    resp = await ready_client.post("/api/v1/session/stop")
    assert resp.status_code == 200
    assert resp.json()["state"] in ("stopping", "transcribing", "idle")

    await recording_session.wait_until_settled()
    body = (await ready_client.get("/api/v1/session")).json()
    assert body["state"] == "idle"
    assert body["text"] == "transcript"
    assert body["cycles_completed"] == 1


async def test_double_start_conflict(ready_client, queue_device):
    queue_device.attach()
    await ready_client.post("/api/v1/session/start")
    resp = await ready_client.post("/api/v1/session/start")
    assert resp.status_code == 409
    body = resp.json()
    assert body["code"] == "RECORDING_ALREADY_ACTIVE"
    assert "timestamp" in body


async def test_stop_when_idle_conflict(ready_client):
    resp = await ready_client.post("/api/v1/session/stop")
    assert resp.status_code == 409
    assert resp.json()["code"] == "NOT_RECORDING"


async def test_error_log_levels(ready_client, caplog):
    """Rejected commands log at debug, device problems at warning."""
    with caplog.at_level(logging.DEBUG, logger="src.api.middleware.error_handler"):
        await ready_client.post("/api/v1/session/stop")
        await ready_client.post("/api/v1/session/start")
    levels = {
        record.getMessage().split(" ", 1)[0]: record.levelno
        for record in caplog.records
        if record.name == "src.api.middleware.error_handler"
    }
    assert levels == {"NOT_RECORDING": logging.DEBUG, "DEVICE_UNAVAILABLE": logging.WARNING}


async def test_chunk_requires_chunked_policy(ready_client):
    resp = await ready_client.post("/api/v1/session/chunk")
    assert resp.status_code == 409
    assert resp.json()["code"] == "INVALID_COMMAND"


async def test_reset_clears_transcript(ready_client, queue_device, recording_session, sample_pcm_bytes):
    queue_device.attach()
    await ready_client.post("/api/v1/session/start")
    queue_device.feed(sample_pcm_bytes)
    await ready_client.post("/api/v1/session/stop")
    await recording_session.wait_until_settled()

    resp = await ready_client.post("/api/v1/session/reset")
    assert resp.status_code == 200
    assert resp.json()["text"] == ""


async def test_chunk_endpoint(app, async_client, stt, queue_device):
    """The chunk command closes the current interval in chunked mode."""
    session = RecordingSession(
        EngineHandle(stt),
        queue_device,
        policy=SessionPolicy.chunked_interval,
        chunk_interval=60,
    )
    app.state.session = session
    await async_client.post("/api/v1/engine/load")
    queue_device.attach()
    await async_client.post("/api/v1/session/start")
    queue_device.feed(b"\x01\x00" * 10)

    resp = await async_client.post("/api/v1/session/chunk")
    assert resp.status_code == 200
    assert resp.json()["state"] == "stopping"

    snapshot = await session.wait_until_settled()
    assert snapshot.state == "recording"
    assert snapshot.text == "transcript"
    await session.close()
