"""Materialized audio payloads handed to the recognition engine.

An ``AudioPayload`` is an immutable snapshot of one recording cycle. It may
lazily create a temporary file when an engine needs a path instead of
samples; ``release()`` frees that file and the in-memory bytes exactly once.
"""

import logging
import os
import tempfile

import numpy as np

from src.core.exceptions import PayloadReleasedError
from src.services.audio.processor import AudioProcessor

logger = logging.getLogger(__name__)

PCM_ENCODING = "pcm_s16le"

_FILE_SUFFIXES = {
    PCM_ENCODING: ".wav",
    "wav": ".wav",
    "webm": ".webm",
    "ogg": ".ogg",
    "mp3": ".mp3",
    "flac": ".flac",
}


class AudioPayload:
    """Immutable audio blob for a single transcription call.

    Args:
        data: Concatenated audio bytes of one cycle.
        sample_rate: Sample rate in Hz (PCM only).
        sample_width: Bytes per sample (PCM only).
        channels: Channel count (PCM only).
        encoding: ``"pcm_s16le"`` for raw PCM, otherwise a container label
            such as ``"webm"`` that the engine decodes itself.
        cycle: Index of the recording cycle the payload was captured in.
    """

    def __init__(
        self,
        data: bytes,
        *,
        sample_rate: int = 16000,
        sample_width: int = 2,
        channels: int = 1,
        encoding: str = PCM_ENCODING,
        cycle: int = 0,
    ) -> None:
        self._data: bytes | None = bytes(data)
        self._size = len(self._data)
        self.encoding = encoding
        self.cycle = cycle
        self._processor = AudioProcessor(sample_rate, sample_width, channels)
        self._path: str | None = None
        self._released = False

    def __repr__(self) -> str:
        return (
            f"AudioPayload(cycle={self.cycle}, bytes={self._size}, "
            f"encoding={self.encoding!r}, released={self._released})"
        )

    def __enter__(self) -> "AudioPayload":
        return self

    def __exit__(self, *exc_info) -> None:
        self.release()

    @property
    def is_pcm(self) -> bool:
        return self.encoding == PCM_ENCODING

    @property
    def sample_rate(self) -> int:
        return self._processor.sample_rate

    @property
    def size(self) -> int:
        """Number of audio bytes (still reported after release)."""
        return self._size

    @property
    def is_empty(self) -> bool:
        return self._size == 0

    @property
    def duration(self) -> float:
        """Duration in seconds; 0.0 for encoded containers."""
        if not self.is_pcm:
            return 0.0
        return self._size / self._processor.bytes_per_second

    @property
    def released(self) -> bool:
        return self._released

    @property
    def data(self) -> bytes:
        if self._data is None:
            raise PayloadReleasedError()
        return self._data

    def to_ndarray(self) -> np.ndarray:
        """Decode PCM bytes to a float32 sample array."""
        if not self.is_pcm:
            raise ValueError(f"Cannot decode {self.encoding!r} payload to samples")
        return self._processor.pcm_to_ndarray(self._aligned_pcm())

    def as_file(self) -> str:
        """Return a temporary file holding the payload, creating it on first use.

        PCM payloads are written as WAV; other encodings are written verbatim.
        The file is deleted by ``release()``.
        """
        data = self.data
        if self._path is not None:
            return self._path

        suffix = _FILE_SUFFIXES.get(self.encoding, ".bin")
        fd, path = tempfile.mkstemp(prefix=f"livescribe-cycle{self.cycle}-", suffix=suffix)
        os.close(fd)
        try:
            if self.is_pcm:
                self._processor.save_wav(self._aligned_pcm(), path)
            else:
                with open(path, "wb") as fh:
                    fh.write(data)
        except Exception:
            os.unlink(path)
            raise
        self._path = path
        logger.debug("Wrote payload for cycle %s to %s", self.cycle, path)
        return path

    def _aligned_pcm(self) -> bytes:
        """PCM bytes without a trailing partial frame, for decoding."""
        data = self.data
        aligned = self._processor.align(data)
        if len(aligned) != len(data):
            logger.debug(
                "Ignoring %s trailing bytes of cycle %s when decoding",
                len(data) - len(aligned),
                self.cycle,
            )
        return aligned

    def release(self) -> bool:
        """Free the temporary file and in-memory bytes.

        Returns:
            True on the first call, False if the payload was already released.
        """
        if self._released:
            return False
        self._released = True
        self._data = None
        if self._path is not None:
            try:
                os.unlink(self._path)
            except FileNotFoundError:
                logger.debug("Payload file %s was already removed", self._path)
            self._path = None
        logger.debug("Released payload for cycle %s (%s bytes)", self.cycle, self._size)
        return True
