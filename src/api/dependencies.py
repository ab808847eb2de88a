"""FastAPI dependencies shared by the REST routes."""

from fastapi import Request

from src.services.orchestrator import RecordingSession


def get_recording_session(request: Request) -> RecordingSession:
    """Return the controller created by the application lifespan."""
    return request.app.state.session
