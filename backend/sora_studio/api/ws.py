"""WebSocket endpoint for live job status.

Each connection runs its own StatusPoller for the requested job and relays
status events to the client, finishing with exactly one terminal event.
The client may send "ping" (answered with a pong) or "cancel".
Disconnecting cancels the poller.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from sora_studio.api.deps import get_orchestrator, resolve_credentials
from sora_studio.errors import ValidationError
from sora_studio.schemas.generation import JobHandle
from sora_studio.services.orchestrator import (
    EventKind,
    GenerationEvent,
    GenerationOrchestrator,
    GenerationSession,
)

router = APIRouter()
logger = logging.getLogger(__name__)


def event_payload(event: GenerationEvent) -> dict[str, Any]:
    payload: dict[str, Any] = {"type": event.kind.value, "video_id": event.job_id}
    if event.status is not None:
        payload["status"] = event.status.kind.value
        payload["progress"] = event.status.progress
    if event.outcome is not None:
        payload["state"] = event.outcome.state.value
        payload["attempts"] = event.outcome.attempts
        payload["message"] = event.outcome.message
    return payload


@router.websocket("/ws/videos/{video_id}")
async def ws_video_status(
    ws: WebSocket,
    video_id: str,
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
):
    await ws.accept()

    try:
        credentials = resolve_credentials(ws.headers.get("authorization"))
    except ValidationError as e:
        await ws.send_json({"type": "error", "video_id": video_id, "message": str(e)})
        await ws.close(code=1008)
        return

    events: asyncio.Queue[GenerationEvent] = asyncio.Queue()
    session = orchestrator.watch(JobHandle(id=video_id), credentials, on_event=events.put_nowait)
    client_gone = asyncio.Event()

    logger.info("WS watching video=%s", video_id)
    # The poller must be POLLING before the client can cancel it
    poll_task = asyncio.create_task(session.poller.start())
    listener_task = asyncio.create_task(_listen_client(ws, session, client_gone))

    try:
        while True:
            event = await events.get()
            if client_gone.is_set():
                break
            await ws.send_json(event_payload(event))
            if event.kind is EventKind.TERMINAL:
                break
    except WebSocketDisconnect:
        logger.info("WS disconnected while sending: video=%s", video_id)
    finally:
        session.cancel()
        listener_task.cancel()
        # An in-flight fetch is allowed to finish; its result is discarded
        await poll_task

    if not client_gone.is_set():
        await ws.close()


async def _listen_client(ws: WebSocket, session: GenerationSession, client_gone: asyncio.Event):
    """Background task: handle client messages and detect disconnects."""
    try:
        while True:
            message = await ws.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))
            data = message.get("text")
            if data is None:
                logger.debug("WS ignoring binary frame for video=%s", session.handle.id)
            elif data == "ping":
                await ws.send_json({"type": "pong"})
            elif data == "cancel":
                logger.info("WS client cancelled video=%s", session.handle.id)
                session.cancel()
    except WebSocketDisconnect:
        logger.info("WS disconnected: video=%s", session.handle.id)
        client_gone.set()
        session.cancel()
    except asyncio.CancelledError:
        pass
