from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from chat_realtime.domain.entities.user import UserIdentity


@dataclass(frozen=True, slots=True)
class MessageIntent:
    """A client-submitted message, not yet persisted."""

    conversation_id: UUID
    sender_id: UUID
    body: str | None
    type: str
    client_temp_id: str | None
    file_url: str | None = None
    file_name: str | None = None
    file_size: int | None = None
    meta: dict[str, Any] | None = None


@dataclass(frozen=True, slots=True)
class Message:
    id: UUID
    conversation_id: UUID
    sender_id: UUID
    type: str
    body: str | None
    file_url: str | None
    file_name: str | None
    file_size: int | None
    meta: dict[str, Any] | None
    client_temp_id: str | None
    created_at: datetime

    def to_payload(self, sender: UserIdentity) -> dict[str, Any]:
        """Canonical wire form with the sender inlined. The temp id is never part of it."""
        if sender.id != self.sender_id:
            raise ValueError(f"{sender.id} did not send message {self.id}")
        return {
            "id": self.id,
            "conversationId": self.conversation_id,
            "senderId": {
                "id": sender.id,
                "displayName": sender.display_name,
                "avatarUrl": sender.avatar_url,
            },
            "type": self.type,
            "body": self.body,
            "fileUrl": self.file_url,
            "fileName": self.file_name,
            "fileSize": self.file_size,
            "meta": self.meta,
            "createdAt": self.created_at,
        }
