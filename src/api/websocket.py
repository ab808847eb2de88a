"""WebSocket endpoint for streaming audio into the recording session.

The client streams raw PCM audio bytes (16-bit, mono, at the configured
sample rate) and sends JSON commands. The server pushes a JSON snapshot of
the session after every state, transcript, or error change.

Protocol:
    - Client sends: binary PCM fragments, or text
      ``{"action": "start" | "stop" | "chunk" | "reset"}``.
    - Server sends: ``WebSocketMessage`` objects of type ``connected``,
      ``snapshot``, or ``error``.

Disconnecting ends any active capture; audio captured so far is still
transcribed.
"""

import asyncio
import logging

from fastapi import APIRouter, WebSocket
from pydantic import ValidationError

from src.core.exceptions import LiveScribeError
from src.core.models import SessionSnapshot, WebSocketCommand, WebSocketMessage, WebSocketMessageType
from src.services.audio.capture import QueueCaptureDevice
from src.services.orchestrator import RecordingSession

logger = logging.getLogger(__name__)

router = APIRouter()


def _error_message(detail: str, code: str) -> WebSocketMessage:
    return WebSocketMessage(
        type=WebSocketMessageType.error,
        data={"detail": detail, "code": code},
    )


def _snapshot_message(
    snapshot: SessionSnapshot, msg_type: WebSocketMessageType = WebSocketMessageType.snapshot
) -> WebSocketMessage:
    return WebSocketMessage(type=msg_type, data=snapshot.model_dump(mode="json"))


async def _run_command(session: RecordingSession, action: str) -> None:
    if action == "start":
        await session.start()
    elif action == "stop":
        await session.stop()
    elif action == "chunk":
        await session.advance_chunk()
    elif action == "reset":
        session.reset_transcript()
    else:
        raise ValueError(f"Unknown action: {action}")


async def _pump(websocket: WebSocket, outbox: "asyncio.Queue[WebSocketMessage]") -> None:
    """Send queued messages to the client in order."""
    while True:
        msg = await outbox.get()
        await websocket.send_json(msg.model_dump(mode="json"))


@router.websocket("/ws/audio")
async def audio_ws(websocket: WebSocket) -> None:
    """Audio fragment and command stream for the shared recording session."""
    session: RecordingSession = websocket.app.state.session
    device = session.device

    await websocket.accept()
    if not isinstance(device, QueueCaptureDevice):
        msg = _error_message("Server captures from a local microphone", "DEVICE_NOT_STREAMABLE")
        await websocket.send_json(msg.model_dump(mode="json"))
        await websocket.close(code=1008)
        return

    outbox: asyncio.Queue[WebSocketMessage] = asyncio.Queue()
    unsubscribe = session.subscribe(lambda snapshot: outbox.put_nowait(_snapshot_message(snapshot)))
    device.attach()
    logger.info("Audio WebSocket connected")

    await websocket.send_json(
        _snapshot_message(session.snapshot(), WebSocketMessageType.connected).model_dump(mode="json")
    )
    sender = asyncio.create_task(_pump(websocket, outbox))

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break

            if message.get("bytes") is not None:
                device.feed(message["bytes"])
                continue

            text = message.get("text")
            if text is None:
                continue
            try:
                command = WebSocketCommand.model_validate_json(text)
                await _run_command(session, command.action)
            except LiveScribeError as exc:
                outbox.put_nowait(_error_message(exc.detail, exc.code))
            except (ValidationError, ValueError) as exc:
                outbox.put_nowait(_error_message(f"Invalid message: {exc}", "INVALID_MESSAGE"))
    finally:
        unsubscribe()
        device.detach()
        sender.cancel()
        try:
            await sender
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.debug("Sender stopped with error after disconnect", exc_info=True)
        logger.info("Audio WebSocket disconnected")
