"""Recording session controller.

``RecordingSession`` owns the recording lifecycle as a state machine over
idle → recording → stopping → transcribing. It buffers captured fragments
into one ``ChunkBuffer`` per cycle, hands each materialized payload to the
shared ``EngineHandle`` exactly once, appends results to the running
transcript, and routes failures into the single error channel.

All handlers run on one asyncio event loop: commands are serialized by a
lock, and capture callbacks are plain loop callbacks, so device events and
state transitions are processed in receipt order.

Usage::

    engine = EngineHandle(create_stt("local"), settings.engine_config())
    await engine.load()
    session = RecordingSession(engine, QueueCaptureDevice())

    await session.start()
    ...  # device delivers fragments
    await session.stop()
    await session.wait_until_settled()
    print(session.current_text())
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from functools import partial

from src.core.config import Settings
from src.core.exceptions import (
    DeviceUnavailableError,
    EngineNotReadyError,
    InvalidCommandError,
    LiveScribeError,
    NotRecordingError,
    RecordingAlreadyActiveError,
)
from src.core.models import (
    SessionPolicy,
    SessionSnapshot,
    SessionState,
    TranscriptionResult,
)
from src.services.audio.capture import BaseCaptureDevice, CaptureStream, create_capture_device
from src.services.audio.payload import AudioPayload
from src.services.audio.recorder import ChunkBuffer
from src.services.errors import ErrorReporter
from src.services.transcript import TranscriptAggregator
from src.services.transcription import create_stt
from src.services.transcription.engine import EngineHandle

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[SessionSnapshot], None]

_BUSY_STATES = (SessionState.stopping, SessionState.transcribing)


@dataclass
class CaptureCycle:
    """One recording → stopping → transcribing pass with its own buffer."""

    index: int
    buffer: ChunkBuffer
    stream: CaptureStream | None = None
    final: bool = True  # return to idle (rather than recording) after this cycle
    device_ended: bool = False
    deferred_error: LiveScribeError | None = None


class RecordingSession:
    """Streaming transcription controller.

    Args:
        engine: Shared recognition engine; must be ready before ``start()``.
        device: Capture device acquired once per cycle.
        policy: ``single_shot`` (one cycle per start/stop) or
            ``chunked_interval`` (a cycle per interval until explicit stop).
        chunk_interval: Seconds between automatic chunk boundaries.
        language: Language hint forwarded to the engine.
        transcript: Aggregator to append results to (one is created if omitted).
        errors: Error channel (one is created if omitted).
    """

    def __init__(
        self,
        engine: EngineHandle,
        device: BaseCaptureDevice,
        *,
        policy: SessionPolicy = SessionPolicy.single_shot,
        chunk_interval: float = 3.0,
        language: str | None = None,
        transcript: TranscriptAggregator | None = None,
        errors: ErrorReporter | None = None,
    ) -> None:
        if chunk_interval <= 0:
            raise ValueError("chunk_interval must be positive")
        self._engine = engine
        self._device = device
        self._policy = SessionPolicy(policy)
        self._chunk_interval = chunk_interval
        self._language = language
        self._transcript = transcript if transcript is not None else TranscriptAggregator()
        self._errors = errors if errors is not None else ErrorReporter()

        self._state = SessionState.idle
        self._cycle: CaptureCycle | None = None
        self._next_cycle: CaptureCycle | None = None
        self._cycle_counter = 0
        self._cycles_completed = 0

        self._lock = asyncio.Lock()
        self._settled = asyncio.Event()
        self._settled.set()
        self._timer: asyncio.Task | None = None
        self._transcription: asyncio.Task | None = None
        self._listeners: list[SnapshotListener] = []

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def policy(self) -> SessionPolicy:
        return self._policy

    @property
    def engine(self) -> EngineHandle:
        return self._engine

    @property
    def device(self) -> BaseCaptureDevice:
        return self._device

    @property
    def transcript(self) -> TranscriptAggregator:
        return self._transcript

    @property
    def errors(self) -> ErrorReporter:
        return self._errors

    @property
    def buffer(self) -> ChunkBuffer | None:
        """Buffer of the current cycle; None while idle."""
        return self._cycle.buffer if self._cycle is not None else None

    @property
    def cycles_completed(self) -> int:
        return self._cycles_completed

    def current_text(self) -> str:
        return self._transcript.current_text()

    def current_error(self) -> str:
        return self._errors.message

    def snapshot(self) -> SessionSnapshot:
        report = self._errors.current
        return SessionSnapshot(
            state=self._state,
            text=self.current_text(),
            error=self._errors.message,
            error_kind=report.kind if report else None,
            engine_state=self._engine.state,
            policy=self._policy,
            cycles_completed=self._cycles_completed,
        )

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Call ``listener`` with a snapshot after every change.

        Returns:
            A function that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.warning("Snapshot listener failed (non-fatal)", exc_info=True)

    def _set_state(self, state: SessionState) -> None:
        if state is self._state:
            return
        logger.debug("Session %s -> %s", self._state, state)
        self._state = state
        if state in _BUSY_STATES:
            self._settled.clear()
        else:
            self._settled.set()
        self._notify()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def start(self) -> SessionSnapshot:
        """Begin recording.

        Raises:
            RecordingAlreadyActiveError: If the session is not idle.
            EngineNotReadyError: If the engine has not loaded.
            DeviceUnavailableError: If the capture device cannot be acquired.
        """
        async with self._lock:
            if self._state is not SessionState.idle:
                raise RecordingAlreadyActiveError(state=self._state)

            self._errors.clear()
            if not self._engine.is_ready:
                exc = EngineNotReadyError(
                    detail=f"Recognition engine is not ready (state: {self._engine.state})"
                )
                self._errors.report_exception(exc)
                self._notify()
                raise exc

            cycle = self._new_cycle()
            try:
                await self._acquire(cycle)
            except DeviceUnavailableError as exc:
                self._errors.report_exception(exc)
                self._notify()
                raise

            self._cycle = cycle
            logger.info("Recording started (cycle %s, policy=%s)", cycle.index, self._policy)
            self._enter_recording()
            return self.snapshot()

    async def stop(self) -> SessionSnapshot:
        """End the current recording; its audio is transcribed once capture stops.

        Raises:
            NotRecordingError: If the session is not recording.
        """
        async with self._lock:
            if self._state is not SessionState.recording:
                raise NotRecordingError(state=self._state)
            logger.info("Recording stop requested (cycle %s)", self._cycle.index)
            self._begin_stopping(self._cycle, final=True)
            return self.snapshot()

    async def advance_chunk(self) -> SessionSnapshot:
        """Close the current chunk at an interval boundary and keep recording.

        Capture for the next chunk starts before the current one stops, and the
        session returns to recording once the closed chunk is transcribed.

        Raises:
            InvalidCommandError: If the policy is not chunked-interval.
            NotRecordingError: If the session is not recording.
        """
        if self._policy is not SessionPolicy.chunked_interval:
            raise InvalidCommandError("Chunk boundaries only apply to the chunked_interval policy")
        async with self._lock:
            if self._state is not SessionState.recording:
                raise NotRecordingError(state=self._state)
            self._cancel_timer()
            await self._rollover(self._cycle)
            return self.snapshot()

    def reset_transcript(self) -> SessionSnapshot:
        """Clear the accumulated transcript."""
        self._transcript.reset()
        logger.info("Transcript cleared")
        self._notify()
        return self.snapshot()

    async def wait_until_settled(self) -> SessionSnapshot:
        """Wait until the session is neither stopping nor transcribing.

        There is no timeout: a hung engine call keeps the session transcribing.
        """
        await self._settled.wait()
        return self.snapshot()

    async def close(self) -> None:
        """Stop capture, let an in-flight transcription finish, and release buffers."""
        async with self._lock:
            self._cancel_timer()
            if self._next_cycle is not None:
                self._discard(self._next_cycle)
                self._next_cycle = None
            if self._cycle is not None:
                self._cycle.final = True
            if self._state is SessionState.recording:
                self._begin_stopping(self._cycle, final=True)
        await self._settled.wait()
        self._listeners.clear()

    # ------------------------------------------------------------------
    # Cycle management
    # ------------------------------------------------------------------

    def _new_cycle(self) -> CaptureCycle:
        self._cycle_counter += 1
        buffer = ChunkBuffer(
            sample_rate=self._device.sample_rate,
            sample_width=self._device.sample_width,
            channels=self._device.channels,
            encoding=self._device.encoding,
            cycle=self._cycle_counter,
        )
        return CaptureCycle(index=self._cycle_counter, buffer=buffer)

    async def _acquire(self, cycle: CaptureCycle) -> None:
        try:
            cycle.stream = await self._device.acquire(
                partial(self._on_fragment, cycle),
                partial(self._on_stopped, cycle),
            )
        except DeviceUnavailableError:
            cycle.buffer.reset()
            raise
        except Exception as exc:
            cycle.buffer.reset()
            raise DeviceUnavailableError(f"Audio capture failed: {exc}") from exc

    def _discard(self, cycle: CaptureCycle) -> None:
        if cycle.stream is not None:
            cycle.stream.stop()
        cycle.buffer.reset()

    def _enter_recording(self) -> None:
        self._set_state(SessionState.recording)
        if self._policy is SessionPolicy.chunked_interval:
            self._timer = asyncio.create_task(self._run_interval_timer(self._cycle))

    def _cancel_timer(self) -> None:
        timer, self._timer = self._timer, None
        if timer is not None and timer is not asyncio.current_task():
            timer.cancel()

    async def _run_interval_timer(self, cycle: CaptureCycle) -> None:
        await asyncio.sleep(self._chunk_interval)
        async with self._lock:
            if self._cycle is not cycle or self._state is not SessionState.recording:
                return
            self._timer = None
            try:
                await self._rollover(cycle)
            except Exception:
                logger.exception("Chunk boundary failed for cycle %s", cycle.index)

    async def _rollover(self, cycle: CaptureCycle) -> None:
        next_cycle = self._new_cycle()
        try:
            await self._acquire(next_cycle)
        except DeviceUnavailableError as exc:
            logger.warning(
                "Could not continue capture after cycle %s: %s", cycle.index, exc.detail
            )
            cycle.deferred_error = exc
            self._begin_stopping(cycle, final=True)
            return

        if self._cycle is not cycle or self._state is not SessionState.recording:
            # The device ended this cycle while the next capture was opening.
            self._discard(next_cycle)
            return

        self._next_cycle = next_cycle
        logger.info("Chunk boundary: cycle %s closed, cycle %s capturing", cycle.index, next_cycle.index)
        self._begin_stopping(cycle, final=False)

    def _begin_stopping(self, cycle: CaptureCycle, *, final: bool) -> None:
        cycle.final = final
        self._cancel_timer()
        self._set_state(SessionState.stopping)
        cycle.stream.stop()

    # ------------------------------------------------------------------
    # Capture callbacks
    # ------------------------------------------------------------------

    def _on_fragment(self, cycle: CaptureCycle, data: bytes) -> None:
        if cycle is self._next_cycle:
            cycle.buffer.append(data)
        elif cycle is self._cycle and self._state in (SessionState.recording, SessionState.stopping):
            cycle.buffer.append(data)
        else:
            logger.debug("Dropping %s bytes for closed cycle %s", len(data), cycle.index)

    def _on_stopped(self, cycle: CaptureCycle) -> None:
        if cycle is self._next_cycle:
            logger.warning("Capture for cycle %s ended while the previous chunk transcribes", cycle.index)
            cycle.device_ended = True
            return
        if cycle is not self._cycle:
            return

        if self._state is SessionState.recording:
            logger.warning("Capture device ended cycle %s; transcribing captured audio", cycle.index)
            cycle.final = True
            self._cancel_timer()
            self._set_state(SessionState.stopping)
        if self._state is SessionState.stopping:
            self._dispatch(cycle)

    # ------------------------------------------------------------------
    # Transcription
    # ------------------------------------------------------------------

    def _dispatch(self, cycle: CaptureCycle) -> None:
        payload = cycle.buffer.materialize()
        logger.info(
            "Transcribing cycle %s (%s fragments, %.2fs)",
            cycle.index,
            cycle.buffer.fragment_count,
            payload.duration,
        )
        self._set_state(SessionState.transcribing)
        self._transcription = asyncio.create_task(self._transcribe(cycle, payload))

    async def _transcribe(self, cycle: CaptureCycle, payload: AudioPayload) -> None:
        result: TranscriptionResult | None = None
        error: Exception | None = None
        try:
            if payload.is_empty:
                logger.info("Cycle %s captured no audio; skipping engine call", cycle.index)
            else:
                result = await self._engine.transcribe(payload, language=self._language)
        except LiveScribeError as exc:
            error = exc
        except Exception as exc:
            logger.exception("Unexpected error transcribing cycle %s", cycle.index)
            error = exc
        finally:
            cycle.buffer.reset()

        self._transcription = None
        if error is not None:
            self._complete_failed(cycle, error)
        else:
            self._complete_succeeded(cycle, result)

    def _complete_succeeded(self, cycle: CaptureCycle, result: TranscriptionResult | None) -> None:
        text = result.text if result is not None else ""
        self._transcript.append(text, cycle=cycle.index)
        self._cycles_completed += 1
        self._errors.clear()
        if cycle.deferred_error is not None:
            self._errors.report_exception(cycle.deferred_error)
        logger.info("Cycle %s transcribed (%s chars)", cycle.index, len(text.strip()))

        self._cycle = None
        next_cycle, self._next_cycle = self._next_cycle, None
        if cycle.final or next_cycle is None:
            if next_cycle is not None:
                self._discard(next_cycle)
            self._set_state(SessionState.idle)
            return

        self._cycle = next_cycle
        if next_cycle.device_ended:
            next_cycle.final = True
            self._set_state(SessionState.stopping)
            self._dispatch(next_cycle)
        else:
            self._enter_recording()

    def _complete_failed(self, cycle: CaptureCycle, error: Exception) -> None:
        logger.warning("Cycle %s failed: %s", cycle.index, error)
        self._errors.report_exception(error)
        self._cycle = None
        if self._next_cycle is not None:
            self._discard(self._next_cycle)
            self._next_cycle = None
        self._cancel_timer()
        self._set_state(SessionState.idle)


# ---------------------------------------------------------------------------
# Construction from settings
# ---------------------------------------------------------------------------


def create_session(settings: Settings) -> RecordingSession:
    """Build the engine, capture device, and controller described by ``settings``.

    The engine is returned unloaded; call ``session.engine.load()``.
    """
    stt = create_stt(settings.whisper_provider, beam_size=settings.whisper_beam_size)
    engine = EngineHandle(stt, settings.engine_config())

    device_kwargs = {
        "sample_rate": settings.audio_sample_rate,
        "channels": settings.audio_channels,
    }
    if settings.capture_device == "microphone":
        device_kwargs["block_ms"] = settings.microphone_block_ms
        device_kwargs["device"] = settings.microphone_device
    device = create_capture_device(settings.capture_device, **device_kwargs)

    return RecordingSession(
        engine,
        device,
        policy=settings.session_policy,
        chunk_interval=settings.chunk_interval_seconds,
        language=settings.whisper_default_language or None,
    )
