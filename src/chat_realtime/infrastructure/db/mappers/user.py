from __future__ import annotations

from chat_realtime.domain.entities.user import UserIdentity
from chat_realtime.infrastructure.db.models.user import UserModel


def model_to_entity(model: UserModel) -> UserIdentity:
    return UserIdentity(
        id=model.id,
        display_name=model.display_name,
        avatar_url=model.avatar_url,
    )
