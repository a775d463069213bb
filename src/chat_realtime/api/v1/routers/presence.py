from __future__ import annotations

from fastapi import APIRouter

from chat_realtime.api.deps import GatewayDep
from chat_realtime.api.v1.schemas.presence import OnlineUsersOut

router = APIRouter(prefix="/api/v1/presence", tags=["presence"])


@router.get("/online", response_model=OnlineUsersOut)
async def online_users(gateway: GatewayDep) -> OnlineUsersOut:
    user_ids = gateway.online_users()
    return OnlineUsersOut(user_ids=user_ids, count=len(user_ids))
