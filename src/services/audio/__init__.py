"""
Audio module - capture devices, per-cycle buffering, and payloads.
"""

from .capture import BaseCaptureDevice, CaptureStream, QueueCaptureDevice, create_capture_device
from .payload import AudioPayload
from .processor import AudioProcessor
from .recorder import ChunkBuffer

__all__ = [
    "AudioPayload",
    "AudioProcessor",
    "BaseCaptureDevice",
    "CaptureStream",
    "ChunkBuffer",
    "QueueCaptureDevice",
    "create_capture_device",
]
