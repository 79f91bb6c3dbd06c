import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set

from fastapi import WebSocket

logger = logging.getLogger(__name__)


def conversation_room(conversation_id: int) -> str:
    return f"conversation_{conversation_id}"


def user_room(user_id: int) -> str:
    return f"user_{user_id}"


@dataclass(eq=False)
class Connection:
    websocket: WebSocket
    user_id: int
    rooms: Set[str] = field(default_factory=set)

    @property
    def connection_id(self) -> str:
        return f"chat_{self.user_id}_{id(self.websocket)}"


class ConnectionManager:
    """Tracks live chat sockets and their room memberships for this process."""

    def __init__(self) -> None:
        self.active_connections: Dict[str, Connection] = {}
        self.rooms: Dict[str, Set[str]] = {}

    def connect(self, websocket: WebSocket, user_id: int) -> Connection:
        conn = Connection(websocket=websocket, user_id=user_id)
        self.active_connections[conn.connection_id] = conn
        logger.info(f"User {user_id} connected ({conn.connection_id})")
        return conn

    def disconnect(self, conn: Connection) -> None:
        for room in list(conn.rooms):
            self.leave(conn, room)
        self.active_connections.pop(conn.connection_id, None)
        logger.info(f"User {conn.user_id} disconnected ({conn.connection_id})")

    def join(self, conn: Connection, room: str) -> None:
        conn.rooms.add(room)
        self.rooms.setdefault(room, set()).add(conn.connection_id)

    def leave(self, conn: Connection, room: str) -> None:
        conn.rooms.discard(room)
        members = self.rooms.get(room)
        if members is None:
            return
        members.discard(conn.connection_id)
        if not members:
            del self.rooms[room]

    def room_members(self, room: str) -> List[Connection]:
        return [self.active_connections[cid] for cid in self.rooms.get(room, ()) if cid in self.active_connections]

    async def send(self, conn: Connection, event: str, data: Any) -> bool:
        try:
            await conn.websocket.send_json({"event": event, "data": data})
            return True
        except Exception as e:
            logger.warning(f"Dropping dead socket {conn.connection_id}: {e}")
            self.disconnect(conn)
            return False

    async def emit_to_room(self, room: str, event: str, data: Any, exclude: Optional[Connection] = None) -> int:
        delivered = 0
        for conn in self.room_members(room):
            if conn is exclude:
                continue
            if await self.send(conn, event, data):
                delivered += 1
        return delivered

    async def emit_to_user(self, user_id: int, event: str, data: Any) -> int:
        return await self.emit_to_room(user_room(user_id), event, data)

    def is_online(self, user_id: int) -> bool:
        # Scans every live socket; several sockets for one user all count
        return any(conn.user_id == user_id for conn in self.active_connections.values())

    def online_users(self, user_ids: Iterable[int]) -> List[int]:
        return [uid for uid in user_ids if self.is_online(uid)]


manager = ConnectionManager()
