from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel


class OnlineUsersOut(BaseModel):
    user_ids: list[UUID]
    count: int
