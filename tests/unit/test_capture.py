"""Tests for QueueCaptureDevice and the capture-device factory.

The queue device is fed by an external producer (the WebSocket client).
These tests check acquisition rules, fragment delivery order, the
asynchronous stop notification, and stream termination on producer loss.
"""

import asyncio

import pytest

from src.core.exceptions import DeviceUnavailableError
from src.services.audio.capture import QueueCaptureDevice, create_capture_device
from src.services.audio.microphone import SoundDeviceCapture


class _Recorder:
    """Collects capture callbacks."""

    def __init__(self):
        self.fragments: list[bytes] = []
        self.stopped = 0

    def on_fragment(self, data: bytes) -> None:
        self.fragments.append(data)

    def on_stopped(self) -> None:
        self.stopped += 1


@pytest.fixture
def rec():
    return _Recorder()


class TestAcquire:
    async def test_requires_producer(self, rec):
        """Without a connected producer there is no audio source."""
        device = QueueCaptureDevice()
        with pytest.raises(DeviceUnavailableError):
            await device.acquire(rec.on_fragment, rec.on_stopped)

    async def test_producer_optional(self, rec):
        device = QueueCaptureDevice(require_producer=False)
        await device.acquire(rec.on_fragment, rec.on_stopped)
        assert device.active is True

    async def test_attached_device(self, device, rec):
        assert device.attached is True
        stream = await device.acquire(rec.on_fragment, rec.on_stopped)
        assert stream.stopped is False


class TestFeed:
    async def test_fragments_in_order(self, device, rec):
        await device.acquire(rec.on_fragment, rec.on_stopped)
        for chunk in (b"a", b"b", b"c"):
            device.feed(chunk)
        assert rec.fragments == [b"a", b"b", b"c"]

    async def test_dropped_without_active_stream(self, device):
        device.feed(b"\x00" * 10)
        assert device.dropped_bytes == 10

    async def test_new_stream_takes_over(self, device):
        """Fragments go to the most recently acquired stream."""
        first, second = _Recorder(), _Recorder()
        stream = await device.acquire(first.on_fragment, first.on_stopped)
        await device.acquire(second.on_fragment, second.on_stopped)
        stream.stop()
        device.feed(b"x")
        assert first.fragments == []
        assert second.fragments == [b"x"]


class TestStop:
    async def test_stop_notification_is_asynchronous(self, device, rec):
        stream = await device.acquire(rec.on_fragment, rec.on_stopped)
        stream.stop()
        assert rec.stopped == 0
        await asyncio.sleep(0)
        assert rec.stopped == 1
        assert stream.stopped is True

    async def test_no_fragments_after_stop(self, device, rec):
        stream = await device.acquire(rec.on_fragment, rec.on_stopped)
        stream.stop()
        device.feed(b"late")
        await asyncio.sleep(0)
        assert rec.fragments == []
        assert device.active is False

    async def test_stop_twice_notifies_once(self, device, rec):
        stream = await device.acquire(rec.on_fragment, rec.on_stopped)
        stream.stop()
        stream.stop()
        await asyncio.sleep(0)
        assert rec.stopped == 1


class TestDetach:
    async def test_last_detach_ends_stream(self, device, rec):
        """Losing the producer ends the capture immediately."""
        await device.acquire(rec.on_fragment, rec.on_stopped)
        device.detach()
        assert rec.stopped == 1
        assert device.active is False
        assert device.attached is False

    async def test_other_producer_keeps_stream(self, device, rec):
        device.attach()
        await device.acquire(rec.on_fragment, rec.on_stopped)
        device.detach()
        assert rec.stopped == 0
        assert device.active is True


class TestFactory:
    def test_websocket(self):
        device = create_capture_device("websocket", sample_rate=8000)
        assert isinstance(device, QueueCaptureDevice)
        assert device.sample_rate == 8000

    def test_microphone(self):
        device = create_capture_device("microphone", block_ms=50)
        assert isinstance(device, SoundDeviceCapture)
        assert device.blocksize == 800

    def test_unknown(self):
        with pytest.raises(ValueError, match="Unknown capture device"):
            create_capture_device("tape")
