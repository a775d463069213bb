from __future__ import annotations

import uuid
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from chat_realtime.domain.entities.message import Message, MessageIntent
from chat_realtime.infrastructure.db.mappers import message as mapper
from chat_realtime.infrastructure.db.models.message import MessageModel
from chat_realtime.infrastructure.db.models.message_read import MessageReadModel


class MessageStoreRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def save_message(self, intent: MessageIntent) -> tuple[Message, bool]:
        """Insert message idempotently. Returns (message, created_flag)."""
        values = {
            "id": uuid.uuid4(),
            "conversation_id": intent.conversation_id,
            "sender_id": intent.sender_id,
            "type": intent.type,
            "body": intent.body,
            "file_url": intent.file_url,
            "file_name": intent.file_name,
            "file_size": intent.file_size,
            "meta": intent.meta,
            "client_temp_id": intent.client_temp_id,
            "created_at": datetime.now(timezone.utc),
        }
        stmt = (
            pg_insert(MessageModel)
            .values(**values)
            .on_conflict_do_nothing(constraint="uq_message_client_temp_id")
            .returning(MessageModel)
        )
        result = await self._session.execute(stmt)
        row = result.scalar_one_or_none()
        if row is not None:
            return mapper.model_to_entity(row), True

        # Conflict: the client retried a temp id we already stored
        existing = await self._get_by_temp_id(intent)
        assert existing is not None
        return existing, False

    async def _get_by_temp_id(self, intent: MessageIntent) -> Message | None:
        stmt = select(MessageModel).where(
            MessageModel.conversation_id == intent.conversation_id,
            MessageModel.sender_id == intent.sender_id,
            MessageModel.client_temp_id == intent.client_temp_id,
        )
        result = await self._session.execute(stmt)
        model = result.scalar_one_or_none()
        return mapper.model_to_entity(model) if model else None

    async def mark_read(self, message_id: UUID, conversation_id: UUID, user_id: UUID, ts: datetime) -> bool:
        exists = await self._session.execute(
            select(MessageModel.id)
            .where(
                MessageModel.id == message_id,
                MessageModel.conversation_id == conversation_id,
            )
            .limit(1)
        )
        if exists.scalar_one_or_none() is None:
            return False
        stmt = (
            pg_insert(MessageReadModel)
            .values(message_id=message_id, user_id=user_id, read_at=ts)
            .on_conflict_do_nothing(index_elements=["message_id", "user_id"])
        )
        await self._session.execute(stmt)
        return True
