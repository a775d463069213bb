from __future__ import annotations

from datetime import datetime
from typing import Protocol
from uuid import UUID


class ConversationDirectory(Protocol):
    """Membership lookups and conversation bookkeeping. Source of truth for rooms."""

    async def find_user_conversations(self, user_id: UUID) -> list[UUID]: ...

    async def is_member(self, conversation_id: UUID, user_id: UUID) -> bool: ...

    async def touch_activity(self, conversation_id: UUID, ts: datetime) -> None: ...

    async def mark_read(self, conversation_id: UUID, user_id: UUID, ts: datetime) -> None: ...
