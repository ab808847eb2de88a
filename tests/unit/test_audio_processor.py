"""Tests for AudioProcessor (PCM conversion, frame alignment, WAV output).

Validates that raw PCM bytes are converted to normalised float32 numpy
arrays, that trailing partial frames are trimmed, and that WAV files are
written with the configured format.
"""

import wave

import numpy as np
import pytest

from src.services.audio.processor import AudioProcessor


@pytest.fixture
def processor():
    """Create an AudioProcessor configured for 16 kHz, 16-bit mono audio."""
    return AudioProcessor(sample_rate=16000, sample_width=2, channels=1)


class TestPcmToNdarray:
    """Verify PCM-to-ndarray conversion produces valid float32 samples."""

    def test_converts_pcm_to_float32(self, processor, sample_pcm_bytes):
        """Output dtype is float32 for downstream model compatibility."""
        result = processor.pcm_to_ndarray(sample_pcm_bytes)
        assert result.dtype == np.float32

    def test_output_range(self, processor, sample_pcm_bytes):
        """Normalised samples fall within [-1.0, 1.0]."""
        result = processor.pcm_to_ndarray(sample_pcm_bytes)
        assert result.max() <= 1.0
        assert result.min() >= -1.0

    def test_correct_sample_count(self, processor, sample_pcm_bytes):
        """Sample count equals duration * sample_rate."""
        result = processor.pcm_to_ndarray(sample_pcm_bytes)
        assert len(result) == 16000

    def test_rejects_misaligned_data(self, processor):
        """Odd byte counts cannot be 16-bit samples."""
        with pytest.raises(ValueError, match="not aligned"):
            processor.pcm_to_ndarray(b"\x00\x00\x00")

    def test_stereo_is_downmixed(self):
        """Two-channel frames are averaged into one mono sample."""
        stereo = AudioProcessor(channels=2)
        # Left = 16384 (0.5), right = 0 -> mean 0.25
        frame = (16384).to_bytes(2, "little", signed=True) + b"\x00\x00"
        result = stereo.pcm_to_ndarray(frame * 4)
        assert len(result) == 4
        assert result[0] == pytest.approx(0.25)


class TestAlign:
    """Verify trailing partial frames are trimmed."""

    def test_aligned_data_unchanged(self, processor):
        data = b"\x01\x02\x03\x04"
        assert processor.align(data) == data

    def test_trailing_byte_dropped(self, processor):
        assert processor.align(b"\x01\x02\x03") == b"\x01\x02"

    def test_stereo_frame_size(self):
        """A stereo 16-bit frame is four bytes."""
        stereo = AudioProcessor(channels=2)
        assert stereo.frame_size == 4
        assert stereo.align(b"\x00" * 7) == b"\x00" * 4


class TestDuration:
    def test_one_second(self, processor, sample_pcm_bytes):
        assert processor.duration_of(sample_pcm_bytes) == pytest.approx(1.0)

    def test_bytes_per_second(self, processor):
        assert processor.bytes_per_second == 32000


class TestSaveWav:
    """Verify WAV files carry the configured sample format."""

    def test_writes_readable_wav(self, processor, sample_pcm_bytes, tmp_path):
        path = processor.save_wav(sample_pcm_bytes, tmp_path / "nested" / "out.wav")
        with wave.open(path, "rb") as wf:
            assert wf.getframerate() == 16000
            assert wf.getnchannels() == 1
            assert wf.getsampwidth() == 2
            assert wf.getnframes() == 16000

    def test_rejects_empty_data(self, processor, tmp_path):
        with pytest.raises(ValueError, match="empty"):
            processor.save_wav(b"", tmp_path / "empty.wav")
