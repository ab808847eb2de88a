"""Single user-visible error channel.

``ErrorReporter`` holds at most one current error. Failures from the capture
device, the engine, or a transcription call are normalized into an
``ErrorReport`` whose message is safe to show to the user.
"""

import logging
from datetime import UTC, datetime

from src.core.exceptions import (
    DeviceUnavailableError,
    EngineNotReadyError,
    LiveScribeError,
)
from src.core.models import ErrorKind, ErrorReport

logger = logging.getLogger(__name__)

GENERIC_MESSAGE = "An error occurred during transcription."


def kind_for(exc: BaseException) -> ErrorKind:
    """Map an exception onto the user-visible error kind."""
    if isinstance(exc, DeviceUnavailableError):
        return ErrorKind.device_unavailable
    if isinstance(exc, EngineNotReadyError):
        return ErrorKind.engine_not_ready
    return ErrorKind.transcription_failed


class ErrorReporter:
    """Holds the newest reported error until it is cleared."""

    def __init__(self) -> None:
        self._current: ErrorReport | None = None

    @property
    def current(self) -> ErrorReport | None:
        return self._current

    @property
    def message(self) -> str:
        """Current error message, or an empty string when there is none."""
        return self._current.message if self._current else ""

    def report(self, kind: ErrorKind, message: str) -> ErrorReport:
        """Replace the current error with a new one."""
        report = ErrorReport(
            kind=kind,
            message=message or GENERIC_MESSAGE,
            timestamp=datetime.now(UTC),
        )
        if self._current is not None:
            logger.debug("Replacing error %s: %s", self._current.kind, self._current.message)
        self._current = report
        logger.warning("Reported %s: %s", kind, report.message)
        return report

    def report_exception(self, exc: BaseException) -> ErrorReport:
        """Normalize an exception into the error channel.

        Domain errors keep their ``detail``; anything else is reported with a
        generic message so internals do not reach the user.
        """
        message = exc.detail if isinstance(exc, LiveScribeError) else GENERIC_MESSAGE
        return self.report(kind_for(exc), message)

    def clear(self) -> None:
        self._current = None
