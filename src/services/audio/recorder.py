"""Per-cycle audio buffering for the recording session.

Accumulates fragments delivered by the capture device and materializes
them into an immutable ``AudioPayload`` for one transcription call. Every
recording cycle owns its own ``ChunkBuffer``; buffers are never reused
across cycles.
"""

import logging

from src.services.audio.payload import PCM_ENCODING, AudioPayload
from src.services.audio.processor import AudioProcessor

logger = logging.getLogger(__name__)


class ChunkBuffer:
    """Accumulates audio fragments of one recording cycle.

    Fragments are kept in append order. ``materialize()`` copies them into a
    payload that shares nothing with the buffer, so later appends or a
    ``reset()`` never touch a payload already handed to the engine. Payloads
    produced by this buffer that are still outstanding are released by
    ``reset()``.
    """

    def __init__(
        self,
        *,
        sample_rate: int = 16000,
        sample_width: int = 2,
        channels: int = 1,
        encoding: str = PCM_ENCODING,
        cycle: int = 0,
    ) -> None:
        self._sample_rate = sample_rate
        self._sample_width = sample_width
        self._channels = channels
        self._encoding = encoding
        self.cycle = cycle
        self._fragments: list[bytes] = []
        self._byte_count = 0
        self._payloads: list[AudioPayload] = []
        self._processor = AudioProcessor(sample_rate, sample_width, channels)

    @property
    def fragment_count(self) -> int:
        return len(self._fragments)

    @property
    def byte_count(self) -> int:
        return self._byte_count

    @property
    def buffered_duration(self) -> float:
        """Duration of currently buffered PCM audio in seconds."""
        if self._encoding != PCM_ENCODING:
            return 0.0
        return self._byte_count / self._processor.bytes_per_second

    @property
    def is_empty(self) -> bool:
        return self._byte_count == 0

    def append(self, fragment: bytes) -> None:
        """Append one fragment; empty fragments are ignored."""
        if not fragment:
            return
        # Copy so a caller-owned bytearray/memoryview cannot change buffered audio.
        data = bytes(fragment)
        self._fragments.append(data)
        self._byte_count += len(data)

    def materialize(self) -> AudioPayload:
        """Snapshot all buffered fragments into a new payload."""
        payload = AudioPayload(
            b"".join(self._fragments),
            sample_rate=self._sample_rate,
            sample_width=self._sample_width,
            channels=self._channels,
            encoding=self._encoding,
            cycle=self.cycle,
        )
        self._payloads.append(payload)
        return payload

    def reset(self) -> None:
        """Discard fragments and release outstanding payloads."""
        released = sum(1 for payload in self._payloads if payload.release())
        if released:
            logger.debug("Released %s payload(s) for cycle %s", released, self.cycle)
        self._payloads.clear()
        self._fragments.clear()
        self._byte_count = 0
