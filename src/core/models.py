"""
Pydantic v2 models and enums shared by the services and the API layer.

Session state machine, engine configuration, transcription results,
error reports, and the WebSocket message envelope.
"""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field

# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """GET /health response."""

    status: str = "ok"
    version: str = "0.1.0"
    engine_state: str = "unloaded"
    timestamp: datetime


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class Precision(StrEnum):
    """Numeric precision hint for the recognition engine."""

    fp32 = "fp32"
    fp16 = "fp16"


class Accelerator(StrEnum):
    """Hardware acceleration policy for the recognition engine."""

    preferred = "preferred"
    cpu_only = "cpu-only"


class EngineState(StrEnum):
    """Readiness of the shared recognition engine."""

    unloaded = "unloaded"
    loading = "loading"
    ready = "ready"
    failed = "failed"


class EngineConfig(BaseModel):
    """Options passed to the engine when it is loaded."""

    model_size: str = "tiny.en"
    precision: Precision = Precision.fp32
    accelerator: Accelerator = Accelerator.preferred
    language: str | None = None


class EngineStatusResponse(BaseModel):
    """Engine readiness returned by the API."""

    state: EngineState
    device: str | None = None
    compute_type: str | None = None
    detail: str | None = None


# ---------------------------------------------------------------------------
# Transcription
# ---------------------------------------------------------------------------


class TranscriptionSegment(BaseModel):
    """A single transcription segment with timestamps."""

    text: str
    start: float
    end: float
    avg_logprob: float = 0.0
    no_speech_prob: float = 0.0


class TranscriptionResult(BaseModel):
    """Result of one engine call over one audio payload."""

    text: str = ""
    language: str = "unknown"
    language_probability: float = 0.0
    confidence: float = 0.0
    duration: float = 0.0
    segments: list[TranscriptionSegment] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


class SessionState(StrEnum):
    """States of the recording session state machine."""

    idle = "idle"
    recording = "recording"
    stopping = "stopping"
    transcribing = "transcribing"


class SessionPolicy(StrEnum):
    """How recording cycles map to transcription calls."""

    single_shot = "single_shot"
    chunked_interval = "chunked_interval"


class ErrorKind(StrEnum):
    """User-visible failure categories."""

    device_unavailable = "device_unavailable"
    engine_not_ready = "engine_not_ready"
    transcription_failed = "transcription_failed"


class ErrorReport(BaseModel):
    """The single current error shown to the user."""

    kind: ErrorKind
    message: str
    timestamp: datetime


class SessionSnapshot(BaseModel):
    """Observable session state consumed by the presentation layer."""

    state: SessionState
    text: str = ""
    error: str = ""
    error_kind: ErrorKind | None = None
    engine_state: EngineState = EngineState.unloaded
    policy: SessionPolicy = SessionPolicy.single_shot
    cycles_completed: int = 0


# ---------------------------------------------------------------------------
# WebSocket
# ---------------------------------------------------------------------------


class WebSocketMessageType(StrEnum):
    """Discriminator for messages sent over the audio WebSocket."""

    connected = "connected"
    snapshot = "snapshot"
    error = "error"


class WebSocketMessage(BaseModel):
    """JSON message sent from server to client over WebSocket."""

    type: WebSocketMessageType
    data: dict = Field(default_factory=dict)


class WebSocketCommand(BaseModel):
    """JSON command sent from client to server over WebSocket."""

    action: str


# ---------------------------------------------------------------------------
# Error
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Standard error envelope returned by the API."""

    detail: str
    code: str
    timestamp: datetime
