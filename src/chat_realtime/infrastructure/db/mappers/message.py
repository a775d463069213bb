from __future__ import annotations

from chat_realtime.domain.entities.message import Message
from chat_realtime.infrastructure.db.models.message import MessageModel


def model_to_entity(model: MessageModel) -> Message:
    return Message(
        id=model.id,
        conversation_id=model.conversation_id,
        sender_id=model.sender_id,
        type=model.type,
        body=model.body,
        file_url=model.file_url,
        file_name=model.file_name,
        file_size=model.file_size,
        meta=model.meta,
        client_temp_id=model.client_temp_id,
        created_at=model.created_at,
    )
