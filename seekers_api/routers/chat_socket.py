import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status

from ..application.ports.token_issuer import TokenIssuer
from ..realtime.chat_events import ChatEventHandler
from ..realtime.connection_manager import ConnectionManager
from .deps import get_chat_event_handler, get_connection_manager, get_token_issuer

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Realtime"])


def _handshake_token(websocket: WebSocket) -> Optional[str]:
    token = websocket.query_params.get("token")
    if token:
        return token
    auth = websocket.headers.get("authorization", "")
    if auth.lower().startswith("bearer "):
        return auth[7:].strip() or None
    return None


@router.websocket("/ws/chat")
async def chat_socket(
    websocket: WebSocket,
    token_issuer: TokenIssuer = Depends(get_token_issuer),
    conn_manager: ConnectionManager = Depends(get_connection_manager),
    handler: ChatEventHandler = Depends(get_chat_event_handler),
):
    token = _handshake_token(websocket)
    claims = token_issuer.verify(token) if token else None
    if not claims:
        logger.warning("Chat socket rejected: missing or invalid token")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    conn = conn_manager.connect(websocket, claims.id)
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                frame = json.loads(raw)
            except json.JSONDecodeError:
                await conn_manager.send(conn, "error", {"error": "INVALID_EVENT", "message": "Frames must be JSON"})
                continue
            await handler.dispatch(conn, frame)
    except WebSocketDisconnect:
        pass
    finally:
        conn_manager.disconnect(conn)
