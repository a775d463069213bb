from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from chat_realtime.domain.value_objects.enums import PresenceStatus


@dataclass(slots=True)
class ConnectionRecord:
    """Live connection of one user. Owned by the connection registry."""

    user_id: UUID
    connection_id: str
    last_seen_at: datetime
    status: PresenceStatus = PresenceStatus.ONLINE
    display_name: str | None = None
