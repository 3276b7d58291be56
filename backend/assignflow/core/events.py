# core/events.py
import asyncio
import json
import logging
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

from fastapi import WebSocket

from assignflow.core.config import settings

logger = logging.getLogger("assignflow.events")


class EventSink(Protocol):
    """Tells connected clients to re-fetch something. Never carries authoritative state."""

    async def notify(self, user_id: str, event: str, payload: Optional[dict] = None) -> int:
        ...


class NullEventSink:
    async def notify(self, user_id: str, event: str, payload: Optional[dict] = None) -> int:
        return 0


def _default(value: Any):
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def encode_event(event: str, payload: Optional[dict]) -> str:
    return json.dumps({"event": event, "data": payload or {}}, default=_default)


class WebSocketManager:
    """
    Live connections per user. notify() is a no-op for users with no
    connection; sockets that fail on send are dropped.
    """

    def __init__(self, max_connections_per_user: int = 5):
        self._connections: Dict[str, List[WebSocket]] = defaultdict(list)
        self._max_connections_per_user = max_connections_per_user
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, user_id: str) -> bool:
        async with self._lock:
            if len(self._connections[user_id]) >= self._max_connections_per_user:
                logger.warning(f"User {user_id} exceeded max connections ({self._max_connections_per_user})")
                return False
            self._connections[user_id].append(websocket)
            logger.info(f"WebSocket connected for user {user_id}. Total: {len(self._connections[user_id])}")
            return True

    async def disconnect(self, websocket: WebSocket, user_id: str) -> None:
        async with self._lock:
            conns = self._connections.get(user_id)
            if not conns:
                return
            if websocket in conns:
                conns.remove(websocket)
            if not conns:
                del self._connections[user_id]

    async def notify(self, user_id: str, event: str, payload: Optional[dict] = None) -> int:
        message = encode_event(event, payload)
        async with self._lock:
            connections = self._connections.get(user_id, [])
            if not connections:
                return 0

            sent = 0
            dead: List[WebSocket] = []
            for websocket in connections:
                try:
                    await websocket.send_text(message)
                    sent += 1
                except Exception as e:
                    logger.error(f"Failed to push '{event}' to user {user_id}: {e}")
                    dead.append(websocket)

            for ws in dead:
                connections.remove(ws)
            if not connections:
                del self._connections[user_id]
            return sent

    def connection_count(self, user_id: str) -> int:
        return len(self._connections.get(user_id, []))


ws_manager = WebSocketManager(settings.WS_MAX_CONNECTIONS_PER_USER)


def get_event_sink() -> EventSink:
    return ws_manager


def get_ws_manager() -> WebSocketManager:
    return ws_manager
