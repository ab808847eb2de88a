"""Shared pytest fixtures for the LiveScribe test suite.

Provides a scripted STT provider (no model download), engine and capture
device fixtures, and PCM audio helpers used across unit and integration
tests.
"""

import asyncio
import math
import struct
import time

import pytest

from src.core.models import EngineConfig, TranscriptionResult
from src.services.audio.capture import QueueCaptureDevice
from src.services.audio.payload import AudioPayload
from src.services.transcription.base import BaseSTT
from src.services.transcription.engine import EngineHandle

# ---------------------------------------------------------------------------
# STT Fixtures
# ---------------------------------------------------------------------------


class ScriptedSTT(BaseSTT):
    """STT provider returning scripted results in order.

    Each entry of ``results`` is either the text to return or an exception to
    raise. Once the script runs out every call returns ``default_text``.
    When ``gate`` is set, ``transcribe`` waits on it before answering.
    """

    def __init__(self, results=None, *, default_text="transcript", load_error=None, load_delay=0.0):
        self.results = list(results or [])
        self.default_text = default_text
        self.load_error = load_error
        self.load_delay = load_delay
        self.load_calls = 0
        self.loaded_config: EngineConfig | None = None
        self.payloads: list[AudioPayload] = []
        self.sizes: list[int] = []
        self.kwargs: list[dict] = []
        self.gate: asyncio.Event | None = None
        self._loaded = False

    @property
    def device(self) -> str | None:
        return "cpu" if self._loaded else None

    @property
    def compute_type(self) -> str | None:
        return "float32" if self._loaded else None

    def load(self, config: EngineConfig) -> None:
        self.load_calls += 1
        if self.load_delay:
            time.sleep(self.load_delay)
        if self.load_error is not None:
            raise self.load_error
        self.loaded_config = config
        self._loaded = True

    async def transcribe(self, payload: AudioPayload, **kwargs) -> TranscriptionResult:
        self.payloads.append(payload)
        self.sizes.append(payload.size)
        self.kwargs.append(kwargs)
        if self.gate is not None:
            await self.gate.wait()
        item = self.results.pop(0) if self.results else self.default_text
        if isinstance(item, BaseException):
            raise item
        return TranscriptionResult(text=item, language="en", duration=payload.duration)


@pytest.fixture
def stt():
    """Scripted STT provider that answers "transcript" by default."""
    return ScriptedSTT()


@pytest.fixture
async def engine(stt):
    """EngineHandle around the scripted provider, already loaded."""
    handle = EngineHandle(stt)
    await handle.load()
    return handle


# ---------------------------------------------------------------------------
# Capture Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def device():
    """Queue capture device with one producer attached."""
    dev = QueueCaptureDevice()
    dev.attach()
    return dev


# ---------------------------------------------------------------------------
# Audio Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_pcm_bytes():
    """Generate 1 second of 440Hz sine-wave PCM audio (16kHz, 16-bit, mono).

    Returns:
        bytes: Raw PCM audio data.
    """
    sample_rate = 16000
    duration = 1.0
    frequency = 440.0
    amplitude = 16000  # ~50% of max int16

    samples = []
    for i in range(int(sample_rate * duration)):
        value = int(amplitude * math.sin(2 * math.pi * frequency * i / sample_rate))
        samples.append(struct.pack("<h", value))
    return b"".join(samples)


@pytest.fixture
def silent_pcm_bytes():
    """Generate 1 second of silence as PCM audio (16kHz, 16-bit, mono).

    Returns:
        bytes: Raw PCM silence data (all zeros).
    """
    sample_rate = 16000
    return b"\x00\x00" * sample_rate
