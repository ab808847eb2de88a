"""PCM sample-format helpers.

Converts raw PCM bytes to numpy arrays, trims partial frames, and writes
WAV files for engines that need a file reference.
"""

import wave
from pathlib import Path

import numpy as np


class AudioProcessor:
    """Handles PCM audio data conversion for one sample format.

    Args:
        sample_rate: Audio sample rate in Hz (default: 16 kHz).
        sample_width: Bytes per sample (2 = 16-bit signed PCM).
        channels: Number of audio channels (1 = mono).
    """

    def __init__(
        self,
        sample_rate: int = 16000,
        sample_width: int = 2,
        channels: int = 1,
    ) -> None:
        self.sample_rate = sample_rate
        self.sample_width = sample_width
        self.channels = channels

    @property
    def frame_size(self) -> int:
        """Bytes per frame (one sample for every channel)."""
        return self.sample_width * self.channels

    @property
    def bytes_per_second(self) -> int:
        return self.sample_rate * self.frame_size

    def duration_of(self, pcm_data: bytes) -> float:
        """Duration in seconds of ``pcm_data``."""
        return len(pcm_data) / self.bytes_per_second

    def align(self, pcm_data: bytes) -> bytes:
        """Drop a trailing partial frame so the data is frame-aligned."""
        remainder = len(pcm_data) % self.frame_size
        return pcm_data[: len(pcm_data) - remainder] if remainder else pcm_data

    def pcm_to_ndarray(self, pcm_data: bytes) -> np.ndarray:
        """Convert raw PCM bytes (16-bit signed) to a mono float32 numpy array.

        Multi-channel input is down-mixed by averaging channels.

        Args:
            pcm_data: Raw PCM bytes (16-bit).

        Returns:
            Float32 numpy array normalized to [-1.0, 1.0].

        Raises:
            ValueError: If data length is not aligned to sample frame size.
        """
        if len(pcm_data) % self.frame_size != 0:
            raise ValueError(
                f"PCM data length ({len(pcm_data)}) is not aligned to frame size ({self.frame_size})"
            )
        samples = np.frombuffer(pcm_data, dtype=np.int16).astype(np.float32) / 32768.0
        if self.channels > 1:
            samples = samples.reshape(-1, self.channels).mean(axis=1)
        return samples

    def save_wav(self, pcm_data: bytes, file_path: str | Path) -> str:
        """Write raw PCM bytes to a WAV file.

        Args:
            pcm_data: Raw PCM bytes (16-bit).
            file_path: Destination path for the WAV file.

        Returns:
            The absolute path to the saved file.

        Raises:
            ValueError: If pcm_data is empty.
        """
        if not pcm_data:
            raise ValueError("Cannot save empty PCM data to WAV")
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with wave.open(str(path), "wb") as wf:
            wf.setnchannels(self.channels)
            wf.setsampwidth(self.sample_width)
            wf.setframerate(self.sample_rate)
            wf.writeframes(pcm_data)
        return str(path.resolve())
