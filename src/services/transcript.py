"""Running transcript built from successive transcription results."""

import logging

logger = logging.getLogger(__name__)


class TranscriptAggregator:
    """Ordered, append-only transcript.

    Segments are joined with a single delimiter in the order they are
    appended. Empty results are ignored. When a cycle index is supplied, a
    result for a cycle that is not newer than the last appended cycle is
    treated as a duplicate and dropped.

    Args:
        delimiter: Separator placed between consecutive segments.
    """

    def __init__(self, delimiter: str = " ") -> None:
        self._delimiter = delimiter
        self._segments: list[str] = []
        self._last_cycle: int | None = None

    def __len__(self) -> int:
        return len(self._segments)

    @property
    def segments(self) -> tuple[str, ...]:
        return tuple(self._segments)

    @property
    def last_cycle(self) -> int | None:
        return self._last_cycle

    def append(self, segment: str | None, *, cycle: int | None = None) -> bool:
        """Append one transcription result.

        Args:
            segment: Result text; None or whitespace-only is a no-op.
            cycle: Recording cycle the text came from, used for de-duplication.

        Returns:
            True if a segment was added to the transcript.
        """
        if cycle is not None:
            if self._last_cycle is not None and cycle <= self._last_cycle:
                logger.warning(
                    "Dropping result for cycle %s; cycle %s already appended",
                    cycle,
                    self._last_cycle,
                )
                return False
            self._last_cycle = cycle

        text = (segment or "").strip()
        if not text:
            logger.debug("Empty result for cycle %s; transcript unchanged", cycle)
            return False

        self._segments.append(text)
        return True

    def current_text(self) -> str:
        return self._delimiter.join(self._segments)

    def reset(self) -> None:
        """Clear the transcript and forget appended cycles."""
        self._segments.clear()
        self._last_cycle = None
