from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from watchsync.api.deps import get_relay
from watchsync.core import settings
from watchsync.services.relay import RoomRelay


logger = logging.getLogger(__name__)

router = APIRouter(tags=["rooms-ws"])


def _origin_allowed(origin: str | None) -> bool:
    if origin is None:
        return True  # non-browser clients
    allowed = settings.cors_origins
    return "*" in allowed or origin in allowed


@router.websocket(settings.SOCKET_PATH)
async def room_socket(websocket: WebSocket, relay: RoomRelay = Depends(get_relay)):
    origin = websocket.headers.get("origin")
    if not _origin_allowed(origin):
        logger.warning("rejecting websocket from origin %s", origin)
        await websocket.close(code=1008, reason="origin not allowed")
        return

    await websocket.accept()

    conn_id = str(uuid.uuid4())
    relay.connect(conn_id, websocket)

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break

            raw = message.get("text")
            if raw is None:
                try:
                    raw = (message.get("bytes") or b"").decode("utf-8")
                except UnicodeDecodeError:
                    logger.debug("dropping binary frame from %s: invalid utf-8", conn_id)
                    continue

            await relay.handle_raw(conn_id, raw)

    except WebSocketDisconnect:
        pass
    finally:
        await relay.disconnect(conn_id)
