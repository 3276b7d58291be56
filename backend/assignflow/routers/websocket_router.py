import logging

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect, status

from assignflow.core.auth import verify_token
from assignflow.core.events import WebSocketManager, get_ws_manager

logger = logging.getLogger("assignflow")
router = APIRouter(tags=["Realtime"])


@router.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    token: str = Query(...),
    manager: WebSocketManager = Depends(get_ws_manager),
):
    """
    Refresh-signal channel. The server only pushes; anything the client
    sends is read and discarded to keep the connection alive.
    """
    try:
        user_id = verify_token(token)
    except HTTPException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Invalid token")
        return

    await websocket.accept()
    if not await manager.connect(websocket, user_id):
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Connection limit exceeded")
        return

    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info(f"WebSocket closed for user {user_id}")
    finally:
        await manager.disconnect(websocket, user_id)
