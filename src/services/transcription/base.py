"""
Abstract base class for Speech-to-Text providers.

All STT implementations must implement this interface, enabling
provider-agnostic transcription behind ``EngineHandle``.
"""

from abc import ABC, abstractmethod

from src.core.models import EngineConfig, TranscriptionResult
from src.services.audio.payload import AudioPayload


class BaseSTT(ABC):
    """Interface that every STT provider must implement."""

    @property
    def device(self) -> str | None:
        """Compute device chosen by ``load`` (None before loading)."""
        return None

    @property
    def compute_type(self) -> str | None:
        return None

    @abstractmethod
    def load(self, config: EngineConfig) -> None:
        """Load the model (blocking; called from a worker thread).

        Device and precision selection, including any fallback, happen here.
        Raises on failure.
        """

    @abstractmethod
    async def transcribe(self, payload: AudioPayload, **kwargs) -> TranscriptionResult:
        """Transcribe one audio payload.

        Args:
            payload: Materialized audio of one recording cycle.
            **kwargs: Provider-specific options (language, beam_size, etc.).

        Returns:
            TranscriptionResult with at least ``text``.
        """
