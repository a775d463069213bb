"""Realtime session gateway: wires the components and owns the connection lifecycle."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from chat_realtime.application.ports.clock import Clock, SystemClock
from chat_realtime.application.ports.transport import Connection
from chat_realtime.application.uow import UnitOfWorkFactory
from chat_realtime.domain.entities.message import MessageIntent
from chat_realtime.domain.entities.user import UserIdentity
from chat_realtime.domain.value_objects.enums import CallType, PresenceStatus, SignalKind
from chat_realtime.services.call_manager import CallManager
from chat_realtime.services.connection_registry import ConnectionRegistry
from chat_realtime.services.message_relay import MESSAGE_NEW, MessageRelay
from chat_realtime.services.presence import PresenceBroadcaster
from chat_realtime.services.room_router import RoomRouter
from chat_realtime.services.timers import PeriodicTask
from chat_realtime.services.typing_tracker import TypingTracker

logger = logging.getLogger(__name__)

CONVERSATION_UPDATED = "conversation:updated"


@dataclass(frozen=True, slots=True)
class ClientSession:
    """An authenticated connection and the identity behind it."""

    connection: Connection
    identity: UserIdentity

    @property
    def connection_id(self) -> str:
        return self.connection.connection_id

    @property
    def user_id(self) -> UUID:
        return self.identity.id

    @property
    def display_name(self) -> str:
        return self.identity.display_name


class RealtimeGateway:
    """Entry point for every inbound realtime event.

    All state lives in process memory and is mutated from a single event
    loop. Handlers suspend only on unit-of-work calls; anything read before
    such a call is checked again after it.
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        *,
        clock: Clock | None = None,
        offline_grace: float = 5.0,
        typing_stale_after: float = 60.0,
        typing_sweep_interval: float = 30.0,
        ring_timeout: float | None = None,
    ) -> None:
        self._uow_factory = uow_factory
        self.clock = clock or SystemClock()
        self.registry = ConnectionRegistry(self.clock)
        self.router = RoomRouter()
        self.presence = PresenceBroadcaster(self.registry, self.router, self.clock, offline_grace)
        self.typing = TypingTracker(self.registry, self.router, typing_stale_after)
        self.messages = MessageRelay(self.registry, self.router, uow_factory, self.clock)
        self.calls = CallManager(
            self.registry, self.router, self.presence, uow_factory, self.clock, ring_timeout,
        )
        self._typing_sweeper = PeriodicTask("typing-sweeper", typing_sweep_interval, self.typing.sweep)

    async def start(self) -> None:
        self._typing_sweeper.start()

    async def stop(self) -> None:
        await self._typing_sweeper.stop()
        self.presence.cancel_all()
        self.calls.shutdown()

    # -- lifecycle -------------------------------------------------------

    async def connect(self, connection: Connection, user_id: UUID) -> ClientSession | None:
        """Load the user, register the connection and join all its rooms.

        Returns None if the user does not exist.
        """
        async with self._uow_factory() as uow:
            identity = await uow.users.get_by_id(user_id)
            if identity is None:
                return None
            conversation_ids = await uow.conversations.find_user_conversations(user_id)

        session = ClientSession(connection=connection, identity=identity)
        superseding = self.registry.is_online(user_id)
        self.registry.register(user_id, connection.connection_id, identity.display_name)
        if self.calls.in_call(user_id):
            # the live call carries over to the new connection
            self.registry.set_status(user_id, PresenceStatus.IN_CALL)
        self.router.attach(connection, user_id)
        joined = self.router.join_rooms(connection.connection_id, conversation_ids)
        if not superseding:
            self.presence.announce_online(user_id)
        logger.info(
            "User %s (%s) connected on %s, %d rooms",
            identity.display_name, user_id, connection.connection_id, joined,
        )
        return session

    def disconnect(self, session: ClientSession) -> None:
        """Clean up after a closed connection.

        A connection that was superseded by a newer one only leaves its
        rooms; the newer connection keeps the user's presence, call and
        typing state.
        """
        self.router.detach(session.connection_id)
        if self.registry.unregister(session.user_id, session.connection_id) is None:
            logger.info("Superseded connection %s of %s closed", session.connection_id, session.user_id)
            return
        self.calls.handle_disconnect(session.user_id)
        self.typing.clear_user(session.user_id, session.display_name, session.connection_id)
        self.presence.schedule_offline(session.user_id)
        logger.info("User %s disconnected from %s", session.user_id, session.connection_id)

    # -- messages --------------------------------------------------------

    async def send_message(self, session: ClientSession, intent: MessageIntent) -> None:
        await self.messages.submit(intent, session.identity, session.connection_id)

    async def mark_read(self, session: ClientSession, message_id: UUID, conversation_id: UUID) -> None:
        self.registry.touch(session.user_id)
        await self.messages.mark_read(message_id, conversation_id, session.user_id, session.connection_id)

    # -- typing ----------------------------------------------------------

    async def start_typing(self, session: ClientSession, conversation_id: UUID) -> None:
        if not await self._is_member(conversation_id, session.user_id):
            return
        if not self._still_current(session):
            return
        self.registry.touch(session.user_id)
        self.typing.start(conversation_id, session.user_id, session.display_name, session.connection_id)

    def stop_typing(self, session: ClientSession, conversation_id: UUID) -> None:
        self.typing.stop(conversation_id, session.user_id, session.display_name, session.connection_id)

    # -- presence & rooms ------------------------------------------------

    async def ping(self, session: ClientSession) -> None:
        self.presence.ping(session.user_id)
        try:
            async with self._uow_factory() as uow:
                await uow.users.touch_last_active(session.user_id, self.clock.now())
                await uow.commit()
        except Exception:
            logger.exception("Failed to persist last activity of %s", session.user_id)

    async def join_conversation(self, session: ClientSession, conversation_id: UUID) -> bool:
        """Join a room on demand and mark the conversation read."""
        now = self.clock.now()
        try:
            async with self._uow_factory() as uow:
                if not await uow.conversations.is_member(conversation_id, session.user_id):
                    return False
                await uow.conversations.mark_read(conversation_id, session.user_id, now)
                await uow.commit()
        except Exception:
            logger.exception("conversation join failed (%s)", conversation_id)
            return False
        if not self.router.is_attached(session.connection_id):
            return False
        self.router.join_room(session.connection_id, conversation_id)
        self.router.broadcast_to_room(
            conversation_id,
            CONVERSATION_UPDATED,
            {"conversationId": conversation_id, "lastReadAt": {str(session.user_id): now}},
            exclude_connection_id=session.connection_id,
        )
        return True

    def leave_conversation(self, session: ClientSession, conversation_id: UUID) -> None:
        self.typing.stop(conversation_id, session.user_id, session.display_name, session.connection_id)
        self.router.leave_room(session.connection_id, conversation_id)

    def online_users(self) -> list[UUID]:
        return self.registry.online_user_ids()

    # -- calls -----------------------------------------------------------

    async def init_call(
        self,
        session: ClientSession,
        target_user_id: UUID,
        conversation_id: UUID,
        call_type: CallType,
    ) -> None:
        self.registry.touch(session.user_id)
        await self.calls.initiate(
            session.identity, target_user_id, conversation_id, call_type, session.connection_id,
        )

    def answer_call(self, session: ClientSession, call_id: str) -> None:
        self.calls.answer(session.user_id, call_id, session.connection_id)

    def reject_call(self, session: ClientSession, call_id: str) -> None:
        self.calls.reject(session.user_id, call_id, session.connection_id)

    def hangup_call(self, session: ClientSession, call_id: str) -> None:
        self.calls.hangup(session.user_id, call_id, session.connection_id)

    def relay_signal(self, session: ClientSession, call_id: str, kind: SignalKind, payload: Any) -> None:
        self.calls.relay_signal(session.user_id, call_id, kind, payload, session.connection_id)

    # -- external events -------------------------------------------------

    def apply_external_event(self, event_type: str, data: dict[str, Any]) -> bool:
        """React to membership/message events published by the HTTP layer."""
        try:
            conversation_id = UUID(str(data["conversationId"]))
        except (KeyError, ValueError):
            logger.warning("Ignoring external event %s without a valid conversationId", event_type)
            return False

        if event_type == "message.created":
            message = data.get("message")
            if not isinstance(message, dict):
                return False
            self.router.broadcast_to_room(conversation_id, MESSAGE_NEW, {"message": message})
            return True

        if event_type in ("conversation.member_added", "conversation.member_removed"):
            try:
                user_id = UUID(str(data["userId"]))
            except (KeyError, ValueError):
                return False
            connection_id = self.router.connection_for(user_id)
            if connection_id is None:
                return False
            if event_type == "conversation.member_added":
                return self.router.join_room(connection_id, conversation_id)
            record = self.registry.get(user_id)
            self.typing.stop(conversation_id, user_id, record.display_name if record else None)
            return self.router.leave_room(connection_id, conversation_id)

        logger.debug("Unhandled external event %s", event_type)
        return False

    # -- helpers ---------------------------------------------------------

    async def _is_member(self, conversation_id: UUID, user_id: UUID) -> bool:
        try:
            async with self._uow_factory() as uow:
                return await uow.conversations.is_member(conversation_id, user_id)
        except Exception:
            logger.exception("Membership lookup failed (%s, %s)", conversation_id, user_id)
            return False

    def _still_current(self, session: ClientSession) -> bool:
        return self.registry.owns(session.user_id, session.connection_id)
