"""
Room Registry

Tracks which connections belong to which room and fans envelopes out to
the members of one room.
"""

import asyncio
import logging
from typing import Dict, List

from .protocols import Connection
from .state import MESSAGE_EVENT, MessageEnvelope

logger = logging.getLogger("roomrelay.registry")


class RoomRegistry:
    """
    Membership of live connections per room.

    The room map and every member set are only mutated while holding a
    single lock. ``broadcast`` snapshots the members under that lock and
    delivers outside it, so a slow transport never blocks joins or leaves.

    Rooms are created on first join and evicted when their last member
    leaves.

    Example:
        registry = RoomRegistry()
        await registry.join("64b7...", connection)
        await registry.broadcast("64b7...", envelope)
    """

    def __init__(self, event: str = MESSAGE_EVENT):
        self.event = event
        self._rooms: Dict[str, Dict[str, Connection]] = {}
        self._lock = asyncio.Lock()

    async def join(self, room_id: str, connection: Connection) -> bool:
        """
        Add a connection to a room.

        Returns:
            False if the connection was already a member
        """
        async with self._lock:
            members = self._rooms.setdefault(room_id, {})
            if connection.id in members:
                return False
            members[connection.id] = connection
        logger.debug(f"{connection!r} joined room {room_id}")
        return True

    async def leave(self, room_id: str, connection: Connection) -> bool:
        """
        Remove a connection from a room. No-op if it is not a member.

        Returns:
            True if the connection was removed
        """
        async with self._lock:
            removed = self._remove(room_id, connection)
        if removed:
            logger.debug(f"{connection!r} left room {room_id}")
        return removed

    def _remove(self, room_id: str, connection: Connection) -> bool:
        members = self._rooms.get(room_id)
        if members is None or members.get(connection.id) is not connection:
            return False
        del members[connection.id]
        if not members:
            del self._rooms[room_id]
            logger.debug(f"Room {room_id} is empty, evicted")
        return True

    async def broadcast(self, room_id: str, envelope: MessageEnvelope) -> int:
        """
        Deliver an envelope to every current member of a room.

        Members are snapshotted at call time. A failing member is logged
        and pruned; it never stops delivery to the others and never raises
        to the caller.

        Returns:
            Number of members the envelope was delivered to
        """
        async with self._lock:
            snapshot = list(self._rooms.get(room_id, {}).values())

        if not snapshot:
            logger.debug(f"Broadcast to empty room {room_id} dropped")
            return 0

        payload = envelope.to_wire()
        results = await asyncio.gather(
            *(conn.send(self.event, payload) for conn in snapshot),
            return_exceptions=True
        )

        stale: List[Connection] = []
        for conn, result in zip(snapshot, results):
            if isinstance(result, BaseException):
                logger.warning(f"Delivery to {conn!r} in room {room_id} failed: {result}")
                stale.append(conn)

        if stale:
            async with self._lock:
                for conn in stale:
                    self._remove(room_id, conn)

        return len(snapshot) - len(stale)

    def members(self, room_id: str) -> List[Connection]:
        """Get a snapshot of the members of a room."""
        return list(self._rooms.get(room_id, {}).values())

    def rooms(self) -> List[str]:
        """List ids of rooms with at least one member."""
        return list(self._rooms)

    async def close(self) -> None:
        """Drop all rooms."""
        async with self._lock:
            self._rooms.clear()
        logger.info("Room registry closed")

    def __contains__(self, room_id: str) -> bool:
        return room_id in self._rooms

    def __len__(self) -> int:
        return len(self._rooms)
