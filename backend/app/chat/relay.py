"""Room-scoped message relay over WebSocket connections.

This module tracks which connection belongs to which rooms and forwards
messages to the other members of a room.  There is no history, no presence
protocol and no delivery guarantee: each relay attempts one send to each
connection that is a member of the room at that moment.

Key features:
    - Backend-assigned connection ids
    - Additive room membership (a connection may join several rooms)
    - Snapshot fan-out with asyncio.gather(); one failed send never aborts
      the others, and dead connections are dropped afterwards
    - Per-connection send lock so frames written to one socket keep the
      order in which they were relayed

Thread Safety:
    Membership tables are guarded by a threading.Lock; sends happen outside
    it.  All sends are expected to run on a single event loop.
"""
import asyncio
import logging
import threading
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from fastapi import WebSocket

from .schemas import ServerEvent, frame

logger = logging.getLogger(__name__)


class UnknownConnectionError(Exception):
    """Raised for connection ids that were never connected or already left."""
    def __init__(self, connection_id: str):
        self.connection_id = connection_id
        super().__init__(f"Unknown connection {connection_id}")


@dataclass
class RelayConnection:
    """A live connection and the lock serialising writes to it."""
    id:        str
    websocket: WebSocket
    send_lock: asyncio.Lock = field(default_factory=asyncio.Lock)


class RoomRelay:
    """Manages connections and room memberships for the chat relay.

    Rooms are opaque caller-supplied strings; a room exists as long as at
    least one connection has joined it.
    """

    def __init__(self) -> None:
        # connection_id -> RelayConnection
        self._connections: Dict[str, RelayConnection] = {}

        # room -> {connection_id: None}; dict keeps join order
        self._rooms: Dict[str, Dict[str, None]] = {}

        # connection_id -> rooms joined (for disconnect cleanup)
        self._memberships: Dict[str, Set[str]] = {}

        self._lock = threading.Lock()

    # =========================================================================
    # Connection lifecycle
    # =========================================================================

    async def connect(self, websocket: WebSocket) -> str:
        """Accept a WebSocket and register it under a fresh connection id."""
        await websocket.accept()
        connection = RelayConnection(id=str(uuid.uuid4()), websocket=websocket)
        with self._lock:
            self._connections[connection.id] = connection
            self._memberships[connection.id] = set()
        logger.info(f"[Relay] Connection {connection.id} accepted")
        return connection.id

    def disconnect(self, connection_id: str) -> List[str]:
        """Remove a connection and every room membership it holds.

        Terminal: the id cannot join or receive anything afterwards.
        Calling it twice is harmless.

        Returns:
            Rooms the connection was a member of.
        """
        with self._lock:
            self._connections.pop(connection_id, None)
            rooms = self._memberships.pop(connection_id, set())
            for room in rooms:
                members = self._rooms.get(room)
                if members is None:
                    continue
                members.pop(connection_id, None)
                if not members:
                    del self._rooms[room]
        if rooms:
            logger.info(f"[Relay] Connection {connection_id} left rooms {sorted(rooms)}")
        return sorted(rooms)

    # =========================================================================
    # Membership
    # =========================================================================

    def join(self, connection_id: str, room: str) -> bool:
        """Add a connection to a room. Previous memberships are kept.

        Returns:
            True if this is a new membership, False if already joined.

        Raises:
            UnknownConnectionError: If the connection is not live.
        """
        with self._lock:
            if connection_id not in self._connections:
                raise UnknownConnectionError(connection_id)
            members = self._rooms.setdefault(room, {})
            if connection_id in members:
                return False
            members[connection_id] = None
            self._memberships[connection_id].add(room)
        logger.info(f"[Relay] Connection {connection_id} joined room {room}")
        return True

    def members(self, room: str) -> List[str]:
        """Connection ids in a room, in join order."""
        with self._lock:
            return list(self._rooms.get(room, {}))

    def rooms_of(self, connection_id: str) -> Set[str]:
        with self._lock:
            return set(self._memberships.get(connection_id, set()))

    def is_connected(self, connection_id: str) -> bool:
        with self._lock:
            return connection_id in self._connections

    @property
    def connection_count(self) -> int:
        with self._lock:
            return len(self._connections)

    # =========================================================================
    # Delivery
    # =========================================================================

    async def relay(
        self,
        sender_id: str,
        room: str,
        event: ServerEvent,
        payload: Any,
    ) -> int:
        """Deliver a frame to every member of *room* except the sender.

        Members are snapshotted when the call starts.  The sender does not
        have to be a member itself.

        Returns:
            Number of connections the frame was delivered to.
        """
        with self._lock:
            targets = [
                self._connections[cid]
                for cid in self._rooms.get(room, {})
                if cid != sender_id and cid in self._connections
            ]
        if not targets:
            return 0

        message = frame(event, payload)
        results = await asyncio.gather(
            *[self._safe_send(conn, message) for conn in targets],
            return_exceptions=True,
        )

        failed = [conn for conn, ok in zip(targets, results) if ok is not True]
        for conn in failed:
            logger.debug(f"[Relay] Dropping dead connection {conn.id} from room {room}")
            self.disconnect(conn.id)

        return len(targets) - len(failed)

    async def send_to(self, connection_id: str, event: ServerEvent, payload: Any) -> bool:
        """Deliver a frame to one connection. Returns False if it is gone."""
        with self._lock:
            connection: Optional[RelayConnection] = self._connections.get(connection_id)
        if connection is None:
            return False
        return await self._safe_send(connection, frame(event, payload))

    async def _safe_send(self, connection: RelayConnection, message: dict) -> bool:
        """Send a frame with error handling.

        Returns:
            True if successful, False if the connection failed.
        """
        try:
            async with connection.send_lock:
                await connection.websocket.send_json(message)
            return True
        except Exception as e:
            logger.debug(f"[Relay] Failed to send to connection {connection.id}: {e}")
            return False
