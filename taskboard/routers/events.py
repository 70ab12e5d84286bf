"""
Board event feed over WebSocket.

Each connection is one observer. It is subscribed before the handshake
completes so no event committed after connect can be missed.
"""

import asyncio
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from taskboard.services.event_broadcaster import EventBroadcaster, Subscription

logger = logging.getLogger(__name__)

router = APIRouter()


async def _watch_disconnect(websocket: WebSocket, broadcaster: EventBroadcaster, subscription: Subscription) -> None:
    """Inbound messages are ignored; a disconnect closes the subscription."""
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
    finally:
        broadcaster.unsubscribe(subscription)


@router.websocket("/ws/board")
async def board_events(websocket: WebSocket):
    broadcaster: EventBroadcaster = websocket.app.state.broadcaster
    subscription = broadcaster.subscribe()
    watcher = None
    try:
        await websocket.accept()
        watcher = asyncio.create_task(_watch_disconnect(websocket, broadcaster, subscription))
        while True:
            event = await subscription.get()
            if event is None:
                if subscription.overflowed:
                    # Fell behind; the client reconnects and resyncs
                    await websocket.close(code=status.WS_1013_TRY_AGAIN_LATER)
                break
            await websocket.send_json(event.model_dump(mode="json"))
    except WebSocketDisconnect:
        logger.debug("Observer %s went away", subscription.id)
    finally:
        if watcher is not None:
            watcher.cancel()
        broadcaster.unsubscribe(subscription)
