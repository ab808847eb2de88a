"""Local microphone capture backed by sounddevice.

Opens one ``sounddevice.RawInputStream`` per recording cycle. PortAudio calls
the audio callback on its own thread, so fragments and the stop notification
are marshalled onto the event loop with ``call_soon_threadsafe``.
"""

import asyncio
import logging

from src.core.exceptions import DeviceUnavailableError
from src.services.audio.capture import (
    BaseCaptureDevice,
    CaptureStream,
    FragmentCallback,
    StoppedCallback,
)

logger = logging.getLogger(__name__)


def _lazy_import_sounddevice():
    try:
        import sounddevice as sd  # type: ignore
    except ImportError as exc:  # pragma: no cover - runtime dependency
        raise DeviceUnavailableError(
            "sounddevice is required for microphone capture. Install the 'mic' extra."
        ) from exc
    return sd


class _SoundDeviceStream(CaptureStream):
    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        on_fragment: FragmentCallback,
        on_stopped: StoppedCallback,
    ) -> None:
        super().__init__(on_fragment, on_stopped)
        self._loop = loop
        self._stream = None

    def open(self, sd, *, device, sample_rate: int, channels: int, blocksize: int) -> None:
        self._stream = sd.RawInputStream(
            device=device,
            samplerate=sample_rate,
            channels=channels,
            dtype="int16",
            blocksize=blocksize,
            callback=self._callback,
            finished_callback=self._finished,
        )
        self._stream.start()

    def _callback(self, indata, frames, time_info, status) -> None:
        if status:
            logger.warning("Microphone status: %s", status)
        self._loop.call_soon_threadsafe(self._emit_fragment, bytes(indata))

    def _finished(self) -> None:
        self._loop.call_soon_threadsafe(self._emit_stopped)

    def _request_stop(self) -> None:
        if self._stream is None:
            self._loop.call_soon(self._emit_stopped)
            return
        stream, self._stream = self._stream, None
        try:
            stream.stop()
        finally:
            # finished_callback fires from stop(); close() releases the device.
            stream.close()


class SoundDeviceCapture(BaseCaptureDevice):
    """
    Records 16-bit PCM from a local input device.

    Args:
        sample_rate: Target sample rate (Hz).
        channels: Number of channels to record.
        block_ms: Fragment length in milliseconds.
        device: sounddevice input name or index; None selects the default input.

    Usage:
        device = SoundDeviceCapture(sample_rate=16000, block_ms=100)
        stream = await device.acquire(on_fragment, on_stopped)
    """

    def __init__(
        self,
        *,
        sample_rate: int = 16000,
        channels: int = 1,
        block_ms: int = 100,
        device: str | int | None = None,
    ) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self.block_ms = block_ms
        self.device = int(device) if isinstance(device, str) and device.isdigit() else device

    @property
    def blocksize(self) -> int:
        return max(1, int(self.sample_rate * self.block_ms / 1000))

    async def acquire(
        self, on_fragment: FragmentCallback, on_stopped: StoppedCallback
    ) -> CaptureStream:
        sd = _lazy_import_sounddevice()
        stream = _SoundDeviceStream(asyncio.get_running_loop(), on_fragment, on_stopped)
        try:
            stream.open(
                sd,
                device=self.device,
                sample_rate=self.sample_rate,
                channels=self.channels,
                blocksize=self.blocksize,
            )
        except Exception as exc:
            logger.warning("Could not open microphone %s: %s", self.device or "(default)", exc)
            raise DeviceUnavailableError(f"Microphone unavailable: {exc}") from exc

        logger.info(
            "Microphone capture started device=%s sr=%sHz ch=%s block=%sms",
            self.device or "(default)",
            self.sample_rate,
            self.channels,
            self.block_ms,
        )
        return stream
