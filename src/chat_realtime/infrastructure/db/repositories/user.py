from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from chat_realtime.domain.entities.user import UserIdentity
from chat_realtime.infrastructure.db.mappers import user as mapper
from chat_realtime.infrastructure.db.models.user import UserModel


class UserDirectoryRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, user_id: UUID) -> UserIdentity | None:
        result = await self._session.get(UserModel, user_id)
        return mapper.model_to_entity(result) if result else None

    async def touch_last_active(self, user_id: UUID, ts: datetime) -> None:
        stmt = update(UserModel).where(UserModel.id == user_id).values(last_active_at=ts)
        await self._session.execute(stmt)
