from __future__ import annotations

from datetime import datetime
from typing import Protocol
from uuid import UUID

from chat_realtime.domain.entities.user import UserIdentity


class UserDirectory(Protocol):
    async def get_by_id(self, user_id: UUID) -> UserIdentity | None: ...

    async def touch_last_active(self, user_id: UUID, ts: datetime) -> None: ...
