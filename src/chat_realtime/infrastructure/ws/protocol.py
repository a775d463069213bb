"""WebSocket message envelope and payload models."""
from __future__ import annotations

from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from chat_realtime.domain.value_objects.enums import CallType, MessageType


class WsInbound(BaseModel):
    """Client → Server."""

    type: str  # message:send | typing:start | call:init | ...
    data: dict[str, Any] = {}


class WsOutbound(BaseModel):
    """Server → Client."""

    type: str  # message:ack | presence:update | call:ringing | error | pong | ...
    data: dict[str, Any] = {}


class _Payload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SendMessagePayload(_Payload):
    conversation_id: UUID
    body: str | None = Field(default=None, max_length=2000)
    type: MessageType = MessageType.TEXT
    file_url: str | None = None
    file_name: str | None = None
    file_size: int | None = Field(default=None, gt=0)
    meta: dict[str, Any] | None = None
    temp_id: str = Field(min_length=1, max_length=100)

    @model_validator(mode="after")
    def _check_content(self) -> SendMessagePayload:
        if self.type == MessageType.TEXT and not (self.body and self.body.strip()):
            raise ValueError("text messages require a body")
        if self.type != MessageType.TEXT and not self.file_url:
            raise ValueError(f"{self.type} messages require a fileUrl")
        if self.type == MessageType.FILE and not self.file_name:
            raise ValueError("file messages require a fileName")
        return self


class ConversationPayload(_Payload):
    conversation_id: UUID


class ReadPayload(_Payload):
    message_id: UUID
    conversation_id: UUID


class CallInitPayload(_Payload):
    target_user_id: UUID
    conversation_id: UUID
    type: CallType = CallType.VOICE


class CallPayload(_Payload):
    call_id: str


class OfferPayload(CallPayload):
    offer: Any


class AnswerSignalPayload(CallPayload):
    answer: Any


class CandidatePayload(CallPayload):
    candidate: Any
