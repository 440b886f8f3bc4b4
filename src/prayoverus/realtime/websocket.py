"""WebSocket endpoint — /ws, the receiving end of the fan-out.

Learn: Each client opens one long-lived connection to /ws. The handler:
1. Accepts immediately (no authentication, no topic subscription)
2. Registers the socket with the app's Broadcaster
3. Reads inbound frames only to log them; clients never need to talk
4. Unregisters on disconnect

Delivery is driven entirely from the REST side via Broadcaster.broadcast().
"""

import json

import structlog
from fastapi import APIRouter, Request, WebSocket, WebSocketDisconnect

from prayoverus.realtime.broadcaster import Broadcaster

logger = structlog.get_logger()
router = APIRouter()


def get_broadcaster(request: Request) -> Broadcaster:
    """FastAPI dependency — the app-owned broadcaster for REST handlers."""
    return request.app.state.broadcaster


@router.websocket("/ws")
async def notifications_websocket(websocket: WebSocket):
    """Long-lived notification socket."""
    broadcaster: Broadcaster = websocket.app.state.broadcaster

    await websocket.accept()
    broadcaster.register(websocket)
    client = websocket.client.host if websocket.client else "unknown"
    logger.info("ws.connected", client=client)

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))
            raw = message.get("text")
            if raw is None:
                data = message.get("bytes") or b""
                logger.info("ws.binary_received", client=client, size=len(data))
                continue
            try:
                logger.info("ws.message_received", client=client, message=json.loads(raw))
            except json.JSONDecodeError:
                logger.warning("ws.invalid_message", client=client, raw=raw[:200])
    except WebSocketDisconnect as e:
        logger.info("ws.disconnected", client=client, code=e.code)
    finally:
        broadcaster.unregister(websocket)
