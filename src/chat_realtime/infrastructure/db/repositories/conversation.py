from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from chat_realtime.infrastructure.db.models.conversation import ConversationModel
from chat_realtime.infrastructure.db.models.member import ConversationMemberModel


class ConversationDirectoryRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def find_user_conversations(self, user_id: UUID) -> list[UUID]:
        stmt = select(ConversationMemberModel.conversation_id).where(
            ConversationMemberModel.user_id == user_id
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def is_member(self, conversation_id: UUID, user_id: UUID) -> bool:
        stmt = (
            select(ConversationMemberModel.user_id)
            .where(
                ConversationMemberModel.conversation_id == conversation_id,
                ConversationMemberModel.user_id == user_id,
            )
            .limit(1)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def touch_activity(self, conversation_id: UUID, ts: datetime) -> None:
        stmt = (
            update(ConversationModel)
            .where(ConversationModel.id == conversation_id)
            .values(last_message_at=ts)
        )
        await self._session.execute(stmt)

    async def mark_read(self, conversation_id: UUID, user_id: UUID, ts: datetime) -> None:
        stmt = (
            update(ConversationMemberModel)
            .where(
                ConversationMemberModel.conversation_id == conversation_id,
                ConversationMemberModel.user_id == user_id,
            )
            .values(last_read_at=ts)
        )
        await self._session.execute(stmt)
