"""
Session and engine REST endpoints.

Thin command surface over the ``RecordingSession`` controller: every
endpoint returns the resulting snapshot, and rejected commands surface as
the standard error envelope (409 for commands issued in the wrong state).
"""

import logging

from fastapi import APIRouter, Depends

from src.api.dependencies import get_recording_session
from src.core.models import EngineStatusResponse, SessionSnapshot
from src.services.orchestrator import RecordingSession

logger = logging.getLogger(__name__)

router = APIRouter(tags=["session"])


@router.get("/session", response_model=SessionSnapshot)
async def get_session_snapshot(session: RecordingSession = Depends(get_recording_session)):
    """Current state, transcript, and error."""
    return session.snapshot()


@router.post("/session/start", response_model=SessionSnapshot)
async def start_recording(session: RecordingSession = Depends(get_recording_session)):
    """Start recording (409 if already active, 503 if device/engine unavailable)."""
    return await session.start()


@router.post("/session/stop", response_model=SessionSnapshot)
async def stop_recording(session: RecordingSession = Depends(get_recording_session)):
    """Stop recording and transcribe the captured audio."""
    return await session.stop()


@router.post("/session/chunk", response_model=SessionSnapshot)
async def advance_chunk(session: RecordingSession = Depends(get_recording_session)):
    """Close the current chunk early (chunked-interval policy only)."""
    return await session.advance_chunk()


@router.post("/session/reset", response_model=SessionSnapshot)
async def reset_transcript(session: RecordingSession = Depends(get_recording_session)):
    return session.reset_transcript()


@router.get("/engine", response_model=EngineStatusResponse)
async def get_engine_status(session: RecordingSession = Depends(get_recording_session)):
    return session.engine.status()


@router.post("/engine/load", response_model=EngineStatusResponse)
async def load_engine(session: RecordingSession = Depends(get_recording_session)):
    """Load the recognition engine, or retry after a failed load."""
    await session.engine.load()
    return session.engine.status()
