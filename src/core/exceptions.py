"""
LiveScribe exception hierarchy.

All application-specific exceptions inherit from LiveScribeError,
enabling centralized error handling in the API middleware layer and a
single conversion point into the session's error channel.
"""

from datetime import UTC, datetime


class LiveScribeError(Exception):
    """Base exception for all LiveScribe errors."""

    def __init__(
        self,
        detail: str = "An unexpected error occurred",
        code: str = "LIVESCRIBE_ERROR",
        status_code: int = 500,
    ) -> None:
        self.detail = detail
        self.code = code
        self.status_code = status_code
        self.timestamp = datetime.now(UTC).isoformat()
        super().__init__(detail)


class DeviceUnavailableError(LiveScribeError):
    """Raised when the audio capture device cannot be acquired."""

    def __init__(self, detail: str = "Audio capture device is unavailable") -> None:
        super().__init__(
            detail=detail,
            code="DEVICE_UNAVAILABLE",
            status_code=503,
        )


class EngineNotReadyError(LiveScribeError):
    """Raised when the recognition engine is not loaded (or failed to load)."""

    def __init__(self, detail: str = "Recognition engine is not ready") -> None:
        super().__init__(
            detail=detail,
            code="ENGINE_NOT_READY",
            status_code=503,
        )


class TranscriptionError(LiveScribeError):
    """Raised when STT processing fails."""

    def __init__(self, detail: str = "Transcription failed") -> None:
        super().__init__(
            detail=detail,
            code="TRANSCRIPTION_FAILED",
            status_code=502,
        )


class InvalidCommandError(LiveScribeError):
    """Raised when a session command is issued in the wrong state."""

    def __init__(
        self,
        detail: str = "Command is not valid in the current state",
        code: str = "INVALID_COMMAND",
    ) -> None:
        super().__init__(detail=detail, code=code, status_code=409)


class RecordingAlreadyActiveError(InvalidCommandError):
    """Raised when trying to start a recording while one is already active."""

    def __init__(self, state: str | None = None) -> None:
        detail = "A recording is already active"
        if state:
            detail = f"{detail} (state: {state})"
        super().__init__(detail=detail, code="RECORDING_ALREADY_ACTIVE")


class NotRecordingError(InvalidCommandError):
    """Raised when stopping (or cutting a chunk) while nothing is recording."""

    def __init__(self, state: str | None = None) -> None:
        detail = "No recording is in progress"
        if state:
            detail = f"{detail} (state: {state})"
        super().__init__(detail=detail, code="NOT_RECORDING")


class PayloadReleasedError(LiveScribeError):
    """Raised when an audio payload is used after its resources were released."""

    def __init__(self, detail: str = "Audio payload has already been released") -> None:
        super().__init__(detail=detail, code="PAYLOAD_RELEASED", status_code=500)
