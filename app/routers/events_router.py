import asyncio

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from app.logger import get_logger
from app.routers.dependencies import get_event_relay
from app.services.event_relay import EventRelay, EventSubscription

logger = get_logger(__name__)

router = APIRouter()


async def _forward(websocket: WebSocket, subscription: EventSubscription) -> None:
    while True:
        event, data = await subscription.get()
        await websocket.send_json({"event": event, "data": data})


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


@router.websocket("/ws/events")
async def stream_events(websocket: WebSocket, relay: EventRelay = Depends(get_event_relay)):
    """Push capture progress, live previews and match results to one observer."""
    # subscribe before accepting; events published after the handshake are never missed
    subscription = relay.subscribe()

    tasks = []
    try:
        await websocket.accept()
        tasks = [
            asyncio.create_task(_forward(websocket, subscription)),
            asyncio.create_task(_wait_for_disconnect(websocket)),
        ]
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            error = None if task.cancelled() else task.exception()
            if error is not None and not isinstance(error, WebSocketDisconnect):
                logger.warning(f"Observer stream closed: {error}")
    finally:
        for task in tasks:
            task.cancel()
        relay.unsubscribe(subscription)
