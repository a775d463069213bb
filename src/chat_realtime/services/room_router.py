"""In-process room membership and fan-out."""
from __future__ import annotations

import logging
from typing import Any, Iterable
from uuid import UUID

from chat_realtime.application.ports.transport import Connection

logger = logging.getLogger(__name__)


class RoomRouter:
    """Tracks live connections, their conversation rooms and personal channels.

    Rooms are a cache filled at connect time; membership is re-checked
    against the conversation directory wherever correctness depends on it.
    """

    def __init__(self) -> None:
        self._connections: dict[str, Connection] = {}
        self._owners: dict[str, UUID] = {}
        self._personal: dict[UUID, str] = {}
        self._rooms: dict[UUID, set[str]] = {}
        self._memberships: dict[str, set[UUID]] = {}

    def attach(self, connection: Connection, user_id: UUID) -> None:
        """Add a connection and make it the user's personal channel."""
        cid = connection.connection_id
        self._connections[cid] = connection
        self._owners[cid] = user_id
        self._personal[user_id] = cid
        self._memberships.setdefault(cid, set())
        logger.debug("Connection attached: %s (user=%s, total=%d)", cid, user_id, len(self._connections))

    def detach(self, connection_id: str) -> set[UUID]:
        """Drop a connection from every room. Return the rooms it was in."""
        self._connections.pop(connection_id, None)
        user_id = self._owners.pop(connection_id, None)
        if user_id is not None and self._personal.get(user_id) == connection_id:
            del self._personal[user_id]
        rooms = self._memberships.pop(connection_id, set())
        for conversation_id in rooms:
            self._discard(conversation_id, connection_id)
        logger.debug("Connection detached: %s", connection_id)
        return rooms

    def join_room(self, connection_id: str, conversation_id: UUID) -> bool:
        """Subscribe a connection to a room. Return False if already joined."""
        if connection_id not in self._connections:
            return False
        joined = self._memberships[connection_id]
        if conversation_id in joined:
            return False
        joined.add(conversation_id)
        self._rooms.setdefault(conversation_id, set()).add(connection_id)
        return True

    def join_rooms(self, connection_id: str, conversation_ids: Iterable[UUID]) -> int:
        return sum(1 for cid in conversation_ids if self.join_room(connection_id, cid))

    def leave_room(self, connection_id: str, conversation_id: UUID) -> bool:
        joined = self._memberships.get(connection_id)
        if not joined or conversation_id not in joined:
            return False
        joined.discard(conversation_id)
        self._discard(conversation_id, connection_id)
        return True

    def _discard(self, conversation_id: UUID, connection_id: str) -> None:
        members = self._rooms.get(conversation_id)
        if members is None:
            return
        members.discard(connection_id)
        if not members:
            del self._rooms[conversation_id]

    def rooms_of(self, connection_id: str) -> frozenset[UUID]:
        return frozenset(self._memberships.get(connection_id, ()))

    def room_members(self, conversation_id: UUID) -> frozenset[str]:
        return frozenset(self._rooms.get(conversation_id, ()))

    def connection_for(self, user_id: UUID) -> str | None:
        return self._personal.get(user_id)

    def is_attached(self, connection_id: str) -> bool:
        return connection_id in self._connections

    def broadcast_to_room(
        self,
        conversation_id: UUID,
        event: str,
        payload: dict[str, Any],
        exclude_connection_id: str | None = None,
    ) -> int:
        """Send to every connection in the room except the excluded one."""
        sent = 0
        for cid in list(self._rooms.get(conversation_id, ())):
            if cid == exclude_connection_id:
                continue
            sent += self._deliver(cid, event, payload)
        return sent

    def send_to_user(self, user_id: UUID, event: str, payload: dict[str, Any]) -> bool:
        """Send on the user's personal channel."""
        cid = self._personal.get(user_id)
        if cid is None:
            return False
        return bool(self._deliver(cid, event, payload))

    def send_to_connection(self, connection_id: str, event: str, payload: dict[str, Any]) -> bool:
        return bool(self._deliver(connection_id, event, payload))

    def broadcast(
        self,
        event: str,
        payload: dict[str, Any],
        exclude_connection_id: str | None = None,
    ) -> int:
        """Send to every attached connection."""
        sent = 0
        for cid in list(self._connections):
            if cid == exclude_connection_id:
                continue
            sent += self._deliver(cid, event, payload)
        return sent

    def _deliver(self, connection_id: str, event: str, payload: dict[str, Any]) -> int:
        conn = self._connections.get(connection_id)
        if conn is None:
            return 0
        try:
            conn.send(event, payload)
        except Exception:
            logger.warning("Dropping connection %s after send failure", connection_id, exc_info=True)
            self.detach(connection_id)
            return 0
        return 1
