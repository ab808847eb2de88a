"""Audio capture device abstraction.

A capture device is acquired once per recording cycle and returns a
``CaptureStream``. The stream delivers audio fragments in temporal order and
exactly one terminal stop notification, through the two callbacks passed to
``acquire()``. Callbacks are always invoked on the event loop thread.

``QueueCaptureDevice`` is fed by an external producer (the WebSocket client);
the local microphone lives in ``microphone.py``.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable

from src.core.exceptions import DeviceUnavailableError
from src.services.audio.payload import PCM_ENCODING

logger = logging.getLogger(__name__)

FragmentCallback = Callable[[bytes], None]
StoppedCallback = Callable[[], None]


class CaptureStream(ABC):
    """One acquired capture.

    Subclasses deliver audio through ``_emit_fragment`` and finish with
    ``_emit_stopped``. Fragments arriving after the stop notification are
    dropped, and the stop notification fires at most once.
    """

    def __init__(self, on_fragment: FragmentCallback, on_stopped: StoppedCallback) -> None:
        self._on_fragment = on_fragment
        self._on_stopped = on_stopped
        self._stopped = False
        self._stop_requested = False

    @property
    def stopped(self) -> bool:
        """True once the stop notification has been delivered."""
        return self._stopped

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    def _emit_fragment(self, data: bytes) -> None:
        if self._stopped or self._stop_requested:
            return
        self._on_fragment(data)

    def _emit_stopped(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        self._on_stopped()

    def stop(self) -> None:
        """Request termination; the stop notification follows asynchronously."""
        if self._stop_requested or self._stopped:
            return
        self._stop_requested = True
        self._request_stop()

    @abstractmethod
    def _request_stop(self) -> None:
        """Device-specific shutdown that eventually calls ``_emit_stopped``."""


class BaseCaptureDevice(ABC):
    """Interface that every capture device must implement."""

    sample_rate: int = 16000
    sample_width: int = 2
    channels: int = 1
    encoding: str = PCM_ENCODING

    @abstractmethod
    async def acquire(
        self, on_fragment: FragmentCallback, on_stopped: StoppedCallback
    ) -> CaptureStream:
        """Start capturing.

        Raises:
            DeviceUnavailableError: If the device cannot be opened.
        """


class _QueueStream(CaptureStream):
    """Stream whose fragments are pushed by ``QueueCaptureDevice.feed``."""

    def __init__(
        self,
        device: "QueueCaptureDevice",
        on_fragment: FragmentCallback,
        on_stopped: StoppedCallback,
    ) -> None:
        super().__init__(on_fragment, on_stopped)
        self._device = device

    def _request_stop(self) -> None:
        self._device._release(self)
        # Stop notifications are asynchronous, like a real device.
        asyncio.get_running_loop().call_soon(self._emit_stopped)

    def _terminate(self) -> None:
        """Producer went away: finish the stream without a stop request."""
        self._device._release(self)
        self._emit_stopped()


class QueueCaptureDevice(BaseCaptureDevice):
    """Capture device fed by an external producer such as a WebSocket client.

    A producer calls ``attach()`` when it connects and ``detach()`` when it
    goes away. While no producer is attached ``acquire()`` fails with
    ``DeviceUnavailableError``; detaching ends the active stream. Fragments fed
    while no stream is active are dropped.

    Args:
        sample_rate: Sample rate of the fed PCM audio.
        channels: Channel count of the fed PCM audio.
        encoding: Fragment encoding label.
        require_producer: When False the device can be acquired without an
            attached producer (used by local harnesses).
    """

    def __init__(
        self,
        *,
        sample_rate: int = 16000,
        channels: int = 1,
        encoding: str = PCM_ENCODING,
        require_producer: bool = True,
    ) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self.encoding = encoding
        self._require_producer = require_producer
        self._producers = 0
        self._active: _QueueStream | None = None
        self.dropped_bytes = 0

    @property
    def attached(self) -> bool:
        return self._producers > 0

    @property
    def active(self) -> bool:
        return self._active is not None

    def attach(self) -> None:
        self._producers += 1
        logger.info("Audio producer attached (%s connected)", self._producers)

    def detach(self) -> None:
        self._producers = max(0, self._producers - 1)
        logger.info("Audio producer detached (%s connected)", self._producers)
        if self._producers == 0 and self._active is not None:
            logger.warning("Last audio producer left; ending active capture")
            self._active._terminate()

    async def acquire(
        self, on_fragment: FragmentCallback, on_stopped: StoppedCallback
    ) -> CaptureStream:
        if self._require_producer and not self.attached:
            raise DeviceUnavailableError("No audio source is connected")
        stream = _QueueStream(self, on_fragment, on_stopped)
        self._active = stream
        return stream

    def feed(self, data: bytes) -> None:
        """Deliver one fragment to the active stream."""
        if self._active is None:
            self.dropped_bytes += len(data)
            logger.debug("No active capture; dropped %s bytes", len(data))
            return
        self._active._emit_fragment(data)

    def _release(self, stream: _QueueStream) -> None:
        if self._active is stream:
            self._active = None


def create_capture_device(kind: str, **kwargs) -> BaseCaptureDevice:
    """
    Factory function to create a capture device.

    Args:
        kind: "websocket" (alias "queue") or "microphone"
        **kwargs: Device-specific configuration

    Returns:
        BaseCaptureDevice implementation instance

    Raises:
        ValueError: If the device kind is unknown
    """
    if kind in ("websocket", "queue"):
        return QueueCaptureDevice(**kwargs)
    elif kind == "microphone":
        from .microphone import SoundDeviceCapture
        return SoundDeviceCapture(**kwargs)
    else:
        raise ValueError(f"Unknown capture device: {kind}")
