from __future__ import annotations

import logging
from uuid import UUID

from chat_realtime.application.ports.clock import Clock
from chat_realtime.application.uow import UnitOfWorkFactory
from chat_realtime.domain.entities.message import Message, MessageIntent
from chat_realtime.domain.entities.user import UserIdentity
from chat_realtime.services.connection_registry import ConnectionRegistry
from chat_realtime.services.room_router import RoomRouter

logger = logging.getLogger(__name__)

MESSAGE_NEW = "message:new"
MESSAGE_ACK = "message:ack"
MESSAGE_ERROR = "message:error"
MESSAGE_READ = "message:read"

ACCESS_DENIED = "Conversation not found or access denied"
SEND_FAILED = "Failed to send message"


class MessageRelay:
    """Persists client message intents and fans the canonical record out."""

    def __init__(
        self,
        registry: ConnectionRegistry,
        router: RoomRouter,
        uow_factory: UnitOfWorkFactory,
        clock: Clock,
    ) -> None:
        self._registry = registry
        self._router = router
        self._uow_factory = uow_factory
        self._clock = clock

    async def submit(
        self,
        intent: MessageIntent,
        sender: UserIdentity,
        sender_connection_id: str,
    ) -> Message | None:
        """Validate, persist, then ack the sender and broadcast to the room.

        Returns the persisted message, or None if the sender got
        ``message:error``. Nothing is retried here: the client resends with
        the same temp id.
        """
        self._registry.touch(intent.sender_id)
        try:
            async with self._uow_factory() as uow:
                if not await uow.conversations.is_member(intent.conversation_id, intent.sender_id):
                    self._reject(intent, sender_connection_id, ACCESS_DENIED)
                    return None
                message, created = await uow.messages.save_message(intent)
                if created:
                    await uow.conversations.touch_activity(intent.conversation_id, message.created_at)
                    await uow.commit()
        except Exception:
            logger.exception(
                "Message send failed (conversation=%s, sender=%s)",
                intent.conversation_id, intent.sender_id,
            )
            self._reject(intent, sender_connection_id, SEND_FAILED)
            return None

        payload = message.to_payload(sender)
        self._router.send_to_connection(
            sender_connection_id,
            MESSAGE_ACK,
            {"tempId": intent.client_temp_id, "message": payload},
        )
        # membership was just confirmed; heal a room cache that predates it
        self._router.join_room(sender_connection_id, intent.conversation_id)
        if created:
            self._router.broadcast_to_room(
                intent.conversation_id,
                MESSAGE_NEW,
                {"message": payload},
                exclude_connection_id=sender_connection_id,
            )
        else:
            logger.info("Duplicate submission %s acknowledged without fan-out", intent.client_temp_id)
        return message

    async def mark_read(
        self,
        message_id: UUID,
        conversation_id: UUID,
        user_id: UUID,
        connection_id: str,
    ) -> bool:
        """Record a read receipt and tell the rest of the room."""
        read_at = self._clock.now()
        try:
            async with self._uow_factory() as uow:
                if not await uow.conversations.is_member(conversation_id, user_id):
                    return False
                if not await uow.messages.mark_read(message_id, conversation_id, user_id, read_at):
                    return False
                await uow.commit()
        except Exception:
            logger.exception("mark_read failed (message=%s)", message_id)
            return False

        self._router.broadcast_to_room(
            conversation_id,
            MESSAGE_READ,
            {"messageId": message_id, "userId": user_id, "readAt": read_at},
            exclude_connection_id=connection_id,
        )
        return True

    def _reject(self, intent: MessageIntent, connection_id: str, error: str) -> None:
        self._router.send_to_connection(
            connection_id,
            MESSAGE_ERROR,
            {"tempId": intent.client_temp_id, "error": error},
        )
