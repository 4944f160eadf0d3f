# tempchat/services/connection_manager.py

from __future__ import annotations

from typing import Dict, List, Set
from fastapi import WebSocket
import logging

logger = logging.getLogger(__name__)

# ============================================================================
# WEBSOCKET CONNECTION MANAGER
# ============================================================================

class ConnectionManager:
    """
    Manages WebSocket connections per room and delivers events to them.

    This is the last hop of every fan-out path. With PUB_SUB_SERVICE=local the
    room service hands events straight to ``broadcast_to_room``; with Redis or
    Google Pub/Sub the background listener does, so every instance delivers to
    the sockets it holds.

    Data Structures:
        rooms: Maps room_id -> Set of WebSocket connections in that room
               Example: {"k3j9x0a1": {websocket1, websocket2}}

        connection_rooms: Maps WebSocket -> room_id it is attached to
                          Example: {websocket1: "k3j9x0a1"}

        connection_users: Maps WebSocket -> display name

    Delivery is best effort: a failed send drops that one connection, nothing
    is retried, and clients reconcile on their next poll.
    """

    def __init__(self) -> None:
        """Initialize connection manager with empty data structures."""
        self.rooms: Dict[str, Set[WebSocket]] = {}
        self.connection_rooms: Dict[WebSocket, str] = {}
        self.connection_users: Dict[WebSocket, str] = {}

    async def connect(self, websocket: WebSocket, room_id: str, user_name: str) -> None:
        """
        Accept a WebSocket connection and attach it to a room.

        Args:
            websocket: The WebSocket connection object
            room_id: Room the client is viewing
            user_name: Display name of a room member

        Note:
            The caller checks that the room exists and that ``user_name`` is on
            its roster before calling this.
        """
        await websocket.accept()

        self.rooms.setdefault(room_id, set()).add(websocket)
        self.connection_rooms[websocket] = room_id
        self.connection_users[websocket] = user_name

        logger.info(
            "→ %s connected to room %s (%d online). Total: %d",
            user_name, room_id, len(self.rooms[room_id]), len(self.connection_rooms),
        )

    def disconnect(self, websocket: WebSocket) -> None:
        """
        Forget a connection and clean up its room entry if it was the last one.
        """
        room_id = self.connection_rooms.pop(websocket, None)
        user_name = self.connection_users.pop(websocket, "unknown")
        if room_id is None:
            return

        connections = self.rooms.get(room_id)
        if connections is not None:
            connections.discard(websocket)
            if not connections:
                del self.rooms[room_id]

        logger.info("✗ %s disconnected from room %s. Total: %d", user_name, room_id, len(self.connection_rooms))

    def online_members(self, room_id: str) -> List[str]:
        return sorted({self.connection_users[ws] for ws in self.rooms.get(room_id, set())})

    async def broadcast_to_room(self, room_id: str, message: dict) -> None:
        """
        Send an event to every WebSocket attached to a room.

        Args:
            room_id: Target room
            message: Event dict (will be JSON serialized)

        A ``room_deleted`` event also closes and drops every connection of the
        room once it has been delivered.
        """
        if room_id not in self.rooms:
            logger.debug("[routing] Skipped broadcast: room=%s has 0 subscribers", room_id)
            return

        disconnected = set()
        connections = self.rooms[room_id].copy()  # Copy to avoid modification during iteration

        logger.info("📨 Broadcasting %s to room %s: %d clients", message.get("type"), room_id, len(connections))

        for connection in connections:
            try:
                await connection.send_json(message)
            except Exception as e:
                logger.warning("Send error: %s", e)
                disconnected.add(connection)

        for conn in disconnected:
            self.disconnect(conn)

        if message.get("type") == "room_deleted":
            await self.close_room(room_id)

    async def close_room(self, room_id: str) -> None:
        """Close every connection attached to a room."""
        for connection in list(self.rooms.get(room_id, set())):
            self.disconnect(connection)
            try:
                await connection.close(code=1000, reason="Room deleted")
            except Exception as e:
                logger.debug("Close error: %s", e)

    def get_rooms_info(self) -> Dict[str, dict]:
        """
        Online connection counts per room, used by /health and /metrics.
        """
        return {
            room_id: {"online": len(connections), "members": self.online_members(room_id)}
            for room_id, connections in self.rooms.items()
        }
