from __future__ import annotations

from datetime import datetime
from typing import Protocol
from uuid import UUID

from chat_realtime.domain.entities.message import Message, MessageIntent


class MessageStore(Protocol):
    async def save_message(self, intent: MessageIntent) -> tuple[Message, bool]:
        """Persist intent. Return (message, created).

        A repeated (conversation, sender, client_temp_id) returns the stored
        message with created=False.
        """
        ...

    async def mark_read(self, message_id: UUID, conversation_id: UUID, user_id: UUID, ts: datetime) -> bool:
        """Record a read receipt. Return False unless the message exists in the conversation."""
        ...
