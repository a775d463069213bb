from __future__ import annotations

import logging
from datetime import datetime, timedelta
from uuid import UUID

from chat_realtime.application.ports.clock import Clock, SystemClock
from chat_realtime.domain.entities.connection import ConnectionRecord
from chat_realtime.domain.value_objects.enums import PresenceStatus

logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """Maps a user to its single live connection, status and last-seen time."""

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or SystemClock()
        self._records: dict[UUID, ConnectionRecord] = {}

    def register(
        self,
        user_id: UUID,
        connection_id: str,
        display_name: str | None = None,
    ) -> ConnectionRecord:
        """Register a connection, replacing any previous one for the user."""
        previous = self._records.get(user_id)
        if previous is not None and previous.connection_id != connection_id:
            logger.info(
                "User %s reconnected, superseding connection %s",
                user_id, previous.connection_id,
            )
        record = ConnectionRecord(
            user_id=user_id,
            connection_id=connection_id,
            last_seen_at=self._clock.now(),
            status=PresenceStatus.ONLINE,
            display_name=display_name,
        )
        self._records[user_id] = record
        return record

    def unregister(self, user_id: UUID, connection_id: str | None = None) -> ConnectionRecord | None:
        """Remove the user's entry.

        With ``connection_id`` the entry is only removed while it still
        belongs to that connection.
        """
        record = self._records.get(user_id)
        if record is None:
            return None
        if connection_id is not None and record.connection_id != connection_id:
            return None
        del self._records[user_id]
        return record

    def touch(self, user_id: UUID) -> bool:
        record = self._records.get(user_id)
        if record is None:
            return False
        record.last_seen_at = self._clock.now()
        return True

    def set_status(self, user_id: UUID, status: PresenceStatus) -> bool:
        """Set a connected user's status. Return True if it changed."""
        if status == PresenceStatus.OFFLINE:
            raise ValueError("offline is not a stored status; unregister instead")
        record = self._records.get(user_id)
        if record is None or record.status == status:
            return False
        record.status = status
        return True

    def get(self, user_id: UUID) -> ConnectionRecord | None:
        return self._records.get(user_id)

    def is_online(self, user_id: UUID) -> bool:
        return user_id in self._records

    def owns(self, user_id: UUID, connection_id: str) -> bool:
        record = self._records.get(user_id)
        return record is not None and record.connection_id == connection_id

    def online_user_ids(self) -> list[UUID]:
        return list(self._records)

    def stale_user_ids(self, older_than: timedelta, now: datetime | None = None) -> list[UUID]:
        cutoff = (now or self._clock.now()) - older_than
        return [uid for uid, rec in self._records.items() if rec.last_seen_at < cutoff]

    def __len__(self) -> int:
        return len(self._records)
