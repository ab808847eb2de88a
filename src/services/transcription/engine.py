"""Shared handle on the loaded recognition engine.

``EngineHandle`` is created once per controller and outlives every recording
session. It owns engine readiness: ``load()`` initializes the underlying STT
provider at most once even under concurrent calls, and ``transcribe()``
refuses to run before the engine is ready.
"""

import asyncio
import logging

from src.core.exceptions import EngineNotReadyError, LiveScribeError, TranscriptionError
from src.core.models import EngineConfig, EngineState, EngineStatusResponse, TranscriptionResult
from src.services.audio.payload import AudioPayload
from src.services.transcription.base import BaseSTT

logger = logging.getLogger(__name__)


class EngineHandle:
    """Loads and holds one ready-to-use recognition engine.

    Args:
        stt: The STT provider to load and call.
        config: Device/precision options passed to ``stt.load``.
    """

    def __init__(self, stt: BaseSTT, config: EngineConfig | None = None) -> None:
        self._stt = stt
        self._config = config or EngineConfig()
        self._state = EngineState.unloaded
        self._failure: str | None = None
        self._failed_loads = 0
        self._lock = asyncio.Lock()

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is EngineState.ready

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def failure_reason(self) -> str | None:
        return self._failure

    def status(self) -> EngineStatusResponse:
        return EngineStatusResponse(
            state=self._state,
            device=self._stt.device,
            compute_type=self._stt.compute_type,
            detail=self._failure,
        )

    async def load(self) -> "EngineHandle":
        """Load the engine once; later calls return the ready handle.

        Concurrent callers wait for the in-progress load instead of starting
        another, and share its outcome: if that attempt fails, every caller
        that queued behind it gets the same ``EngineNotReadyError``. A call
        made after a failure has been reported starts a new attempt.

        Raises:
            EngineNotReadyError: If loading fails.
        """
        if self._state is EngineState.ready:
            return self

        failed_loads = self._failed_loads
        async with self._lock:
            if self._state is EngineState.ready:
                return self
            if self._failed_loads != failed_loads and self._state is EngineState.failed:
                # An attempt started before this call failed; report it, do not retry.
                raise EngineNotReadyError(
                    detail=f"Recognition engine failed to load: {self._failure}"
                )

            self._state = EngineState.loading
            self._failure = None
            try:
                await asyncio.to_thread(self._stt.load, self._config)
            except asyncio.CancelledError:
                self._state = EngineState.unloaded
                logger.warning("Recognition engine load cancelled")
                raise
            except Exception as exc:
                self._state = EngineState.failed
                self._failed_loads += 1
                self._failure = exc.detail if isinstance(exc, LiveScribeError) else str(exc)
                logger.error("Recognition engine failed to load: %s", self._failure)
                raise EngineNotReadyError(
                    detail=f"Recognition engine failed to load: {self._failure}"
                ) from exc

            self._state = EngineState.ready
            logger.info(
                "Recognition engine ready (model=%s, device=%s, compute=%s)",
                self._config.model_size,
                self._stt.device,
                self._stt.compute_type,
            )
        return self

    async def transcribe(self, payload: AudioPayload, **kwargs) -> TranscriptionResult:
        """Run one transcription call.

        Raises:
            EngineNotReadyError: If ``load()`` has not completed successfully.
            TranscriptionError: If the engine call fails.
        """
        if not self.is_ready:
            raise EngineNotReadyError(
                detail=f"Recognition engine is not ready (state: {self._state})"
            )
        try:
            return await self._stt.transcribe(payload, **kwargs)
        except LiveScribeError:
            raise
        except Exception as exc:
            raise TranscriptionError(detail=f"Transcription failed: {exc}") from exc
