"""Whisper STT implementation using faster-whisper.

The model is loaded once by ``load()`` with a device/precision policy: when
acceleration is preferred and CTranslate2 reports a CUDA device, CUDA is tried
first and CPU is the fallback. The loaded model is owned by the instance.
"""

import asyncio
import logging
import math

import ctranslate2
from faster_whisper import WhisperModel

from src.core.exceptions import EngineNotReadyError, TranscriptionError
from src.core.models import (
    Accelerator,
    EngineConfig,
    Precision,
    TranscriptionResult,
    TranscriptionSegment,
)
from src.services.audio.payload import AudioPayload
from src.services.transcription.base import BaseSTT

logger = logging.getLogger(__name__)

# CTranslate2 compute type per (device, precision). CPUs lack efficient
# float16 kernels, so fp16 maps to int8 there.
_COMPUTE_TYPES = {
    ("cuda", Precision.fp16): "float16",
    ("cuda", Precision.fp32): "float32",
    ("cpu", Precision.fp16): "int8",
    ("cpu", Precision.fp32): "float32",
}


def compute_type_for(device: str, precision: Precision) -> str:
    """CTranslate2 compute type used for ``precision`` on ``device``."""
    return _COMPUTE_TYPES[(device, Precision(precision))]


def _cuda_available() -> bool:
    try:
        return ctranslate2.get_cuda_device_count() > 0
    except Exception:
        logger.debug("CUDA probe failed", exc_info=True)
        return False


class WhisperSTT(BaseSTT):
    """Speech-to-text provider using faster-whisper (CTranslate2).

    Args:
        model_size: Whisper model size; overrides the size in the load config.
        beam_size: Default beam search width.
    """

    def __init__(self, model_size: str | None = None, beam_size: int = 5) -> None:
        self._model_size = model_size
        self._beam_size = beam_size
        self._model: WhisperModel | None = None
        self._device: str | None = None
        self._compute_type: str | None = None
        self._language: str | None = None

    @property
    def device(self) -> str | None:
        return self._device

    @property
    def compute_type(self) -> str | None:
        return self._compute_type

    @staticmethod
    def candidate_devices(accelerator: Accelerator) -> list[str]:
        """Devices to try in order for the given acceleration policy."""
        if accelerator is Accelerator.preferred and _cuda_available():
            return ["cuda", "cpu"]
        return ["cpu"]

    def load(self, config: EngineConfig) -> None:
        model_size = self._model_size or config.model_size
        self._language = config.language
        last_exc: Exception | None = None

        for device in self.candidate_devices(config.accelerator):
            compute_type = compute_type_for(device, config.precision)
            logger.info(
                "Loading Whisper model: %s (device=%s, compute=%s)",
                model_size,
                device,
                compute_type,
            )
            try:
                model = WhisperModel(model_size, device=device, compute_type=compute_type)
            except Exception as exc:
                logger.warning("Whisper load on %s failed: %s", device, exc)
                last_exc = exc
                continue
            self._model = model
            self._device = device
            self._compute_type = compute_type
            return

        raise EngineNotReadyError(detail=f"Whisper model failed to load: {last_exc}") from last_exc

    def _run_transcription(self, audio, language: str | None, beam_size: int) -> tuple:
        """Run synchronous transcription (CPU/GPU-bound).

        Must be called via asyncio.to_thread(). The segment iterator is
        materialized into a list inside this function to avoid CTranslate2
        thread-safety issues.

        Args:
            audio: File path (str) or numpy float32 array.
            language: ISO language code or None for auto-detect.
            beam_size: Beam search width.

        Returns:
            Tuple of (list[segment_objects], info_object).
        """
        if self._model is None:
            raise EngineNotReadyError()
        segments_iter, info = self._model.transcribe(
            audio,
            language=language,
            beam_size=beam_size,
            vad_filter=False,
        )
        segments = list(segments_iter)
        return segments, info

    @staticmethod
    def _logprob_to_confidence(avg_logprob: float) -> float:
        """Convert average log probability to a 0-1 confidence score."""
        return max(0.0, min(1.0, math.exp(avg_logprob)))

    @staticmethod
    def _segments_to_models(segments) -> list[TranscriptionSegment]:
        """Convert faster-whisper segment objects to Pydantic models."""
        return [
            TranscriptionSegment(
                text=seg.text.strip(),
                start=seg.start,
                end=seg.end,
                avg_logprob=seg.avg_logprob,
                no_speech_prob=seg.no_speech_prob,
            )
            for seg in segments
            if seg.text.strip()
        ]

    async def transcribe(self, payload: AudioPayload, **kwargs) -> TranscriptionResult:
        """Transcribe one payload.

        PCM payloads are decoded to samples; encoded containers are handed to
        faster-whisper as a temporary file.

        Args:
            payload: Audio of one recording cycle.
            **kwargs: Optional keys: language, beam_size.
        """
        if self._model is None:
            raise EngineNotReadyError()

        audio = payload.to_ndarray() if payload.is_pcm else payload.as_file()
        try:
            segments, info = await asyncio.to_thread(
                self._run_transcription,
                audio,
                kwargs.get("language") or self._language,
                kwargs.get("beam_size", self._beam_size),
            )
        except Exception as exc:
            raise TranscriptionError(detail=f"Whisper transcription failed: {exc}") from exc

        segment_models = self._segments_to_models(segments)
        full_text = " ".join(seg.text for seg in segment_models)

        avg_confidence = 0.0
        if segment_models:
            avg_logprob = sum(s.avg_logprob for s in segment_models) / len(segment_models)
            avg_confidence = self._logprob_to_confidence(avg_logprob)

        return TranscriptionResult(
            text=full_text,
            language=info.language or "unknown",
            language_probability=info.language_probability,
            confidence=avg_confidence,
            duration=info.duration,
            segments=segment_models,
        )
