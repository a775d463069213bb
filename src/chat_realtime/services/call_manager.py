"""Dyadic call sessions and WebRTC signal relay."""
from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from chat_realtime.application.exceptions import CallError
from chat_realtime.application.ports.clock import Clock
from chat_realtime.application.uow import UnitOfWorkFactory
from chat_realtime.domain.entities.call import CallSession
from chat_realtime.domain.entities.user import UserIdentity
from chat_realtime.domain.value_objects.enums import (
    CallErrorCode,
    CallStatus,
    CallType,
    HangupReason,
    PresenceStatus,
    SignalKind,
)
from chat_realtime.domain.value_objects.ids import new_call_id
from chat_realtime.services.connection_registry import ConnectionRegistry
from chat_realtime.services.presence import PresenceBroadcaster
from chat_realtime.services.room_router import RoomRouter
from chat_realtime.services.timers import KeyedTimers

logger = logging.getLogger(__name__)

CALL_RINGING = "call:ringing"
CALL_INITIATED = "call:initiated"
CALL_ANSWERED = "call:answered"
CALL_REJECTED = "call:rejected"
CALL_HANGUP = "call:hangup"
CALL_ERROR = "call:error"


class CallManager:
    """Owns the call table and its reverse user index.

    Both structures are only touched together, inside one handler step, so
    every participant of a live session maps back to it and nothing else.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        router: RoomRouter,
        presence: PresenceBroadcaster,
        uow_factory: UnitOfWorkFactory,
        clock: Clock,
        ring_timeout: float | None = None,
        timers: KeyedTimers | None = None,
    ) -> None:
        self._registry = registry
        self._router = router
        self._presence = presence
        self._uow_factory = uow_factory
        self._clock = clock
        self._ring_timeout = ring_timeout
        self._timers = timers or KeyedTimers("call-ring-timeout")
        self._calls: dict[str, CallSession] = {}
        self._user_call: dict[UUID, str] = {}

    # -- queries ---------------------------------------------------------

    def get(self, call_id: str) -> CallSession | None:
        return self._calls.get(call_id)

    def call_of(self, user_id: UUID) -> CallSession | None:
        call_id = self._user_call.get(user_id)
        return self._calls.get(call_id) if call_id else None

    def in_call(self, user_id: UUID) -> bool:
        return user_id in self._user_call

    @property
    def active_count(self) -> int:
        return len(self._calls)

    # -- transitions -----------------------------------------------------

    async def initiate(
        self,
        caller: UserIdentity,
        target_user_id: UUID,
        conversation_id: UUID,
        call_type: CallType,
        connection_id: str,
    ) -> CallSession | None:
        try:
            self._check_can_call(caller.id, target_user_id)
            try:
                async with self._uow_factory() as uow:
                    both_members = (
                        await uow.conversations.is_member(conversation_id, caller.id)
                        and await uow.conversations.is_member(conversation_id, target_user_id)
                    )
            except Exception as exc:
                logger.exception("Call init membership lookup failed")
                raise CallError(CallErrorCode.FAILED, "Failed to initiate call") from exc
            if not both_members:
                raise CallError(CallErrorCode.INVALID_CONVERSATION, "Invalid conversation")
            # the lookup suspended; other handlers may have booked either side
            self._check_can_call(caller.id, target_user_id)
        except CallError as exc:
            self._report(connection_id, exc)
            return None

        if not self._registry.owns(caller.id, connection_id):
            logger.info("Caller %s went away during call init", caller.id)
            return None

        session = CallSession(
            id=new_call_id(),
            participants=(caller.id, target_user_id),
            initiator=caller.id,
            type=call_type,
            conversation_id=conversation_id,
            start_time=self._clock.now(),
        )
        self._calls[session.id] = session
        self._user_call[caller.id] = session.id
        self._user_call[target_user_id] = session.id
        self._presence.set_status(caller.id, PresenceStatus.IN_CALL)

        self._router.send_to_user(
            target_user_id,
            CALL_RINGING,
            {
                "callId": session.id,
                "from": {
                    "userId": caller.id,
                    "displayName": caller.display_name,
                    "avatarUrl": caller.avatar_url,
                },
                "type": call_type.value,
                "conversationId": conversation_id,
            },
        )
        self._router.send_to_connection(
            connection_id,
            CALL_INITIATED,
            {
                "callId": session.id,
                "targetUserId": target_user_id,
                "type": call_type.value,
                "status": session.status.value,
            },
        )
        if self._ring_timeout is not None:
            self._timers.schedule(session.id, self._ring_timeout, lambda: self._expire(session.id))
        logger.info("Call %s ringing: %s -> %s (%s)", session.id, caller.id, target_user_id, call_type.value)
        return session

    def answer(self, user_id: UUID, call_id: str, connection_id: str) -> bool:
        try:
            session = self._require(user_id, call_id)
            if user_id == session.initiator:
                raise CallError(CallErrorCode.INVALID_STATE, "Caller cannot answer own call", call_id)
            if not session.can_transition(CallStatus.ACTIVE):
                raise CallError(CallErrorCode.INVALID_STATE, "Call is not ringing", call_id)
        except CallError as exc:
            self._report(connection_id, exc)
            return False

        session.answer(self._clock.now())
        self._timers.cancel(call_id)
        self._presence.set_status(user_id, PresenceStatus.IN_CALL)
        self._router.send_to_user(
            session.initiator, CALL_ANSWERED, {"callId": call_id, "answeredBy": user_id},
        )
        self._router.send_to_connection(connection_id, CALL_ANSWERED, {"callId": call_id})
        logger.info("Call %s answered by %s", call_id, user_id)
        return True

    def reject(self, user_id: UUID, call_id: str, connection_id: str) -> bool:
        try:
            session = self._require(user_id, call_id)
            if session.status != CallStatus.RINGING:
                raise CallError(CallErrorCode.INVALID_STATE, "Only a ringing call can be rejected", call_id)
        except CallError as exc:
            self._report(connection_id, exc)
            return False

        self._teardown(session)
        self._router.send_to_user(
            session.other_participant(user_id),
            CALL_REJECTED,
            {"callId": call_id, "rejectedBy": user_id},
        )
        logger.info("Call %s rejected by %s", call_id, user_id)
        return True

    def hangup(self, user_id: UUID, call_id: str, connection_id: str) -> bool:
        try:
            session = self._require(user_id, call_id)
        except CallError as exc:
            self._report(connection_id, exc)
            return False

        self._teardown(session)
        self._notify_hangup(session, user_id, HangupReason.HANGUP)
        logger.info("Call %s hung up by %s", call_id, user_id)
        return True

    def handle_disconnect(self, user_id: UUID) -> CallSession | None:
        """Tear down the user's call, if any, blaming the disconnect."""
        call_id = self._user_call.get(user_id)
        if call_id is None:
            return None
        session = self._calls.get(call_id)
        if session is None:
            del self._user_call[user_id]
            return None
        self._teardown(session)
        self._notify_hangup(session, user_id, HangupReason.DISCONNECT)
        logger.info("Call %s ended by disconnect of %s", call_id, user_id)
        return session

    def relay_signal(
        self,
        user_id: UUID,
        call_id: str,
        kind: SignalKind,
        payload: Any,
        connection_id: str,
    ) -> bool:
        """Forward an SDP offer/answer or ICE candidate verbatim to the peer."""
        try:
            session = self._require(user_id, call_id)
        except CallError as exc:
            self._report(connection_id, exc)
            return False
        return self._router.send_to_user(
            session.other_participant(user_id),
            kind.value,
            {"callId": call_id, "payload": payload, "from": user_id},
        )

    def shutdown(self) -> None:
        self._timers.cancel_all()

    # -- internals -------------------------------------------------------

    def _check_can_call(self, caller_id: UUID, target_id: UUID) -> None:
        if caller_id == target_id:
            raise CallError(CallErrorCode.INVALID_TARGET, "Cannot call yourself")
        if caller_id in self._user_call:
            raise CallError(CallErrorCode.ALREADY_IN_CALL, "Already in a call")
        if not self._registry.is_online(target_id):
            raise CallError(CallErrorCode.OFFLINE, "User is offline")
        if target_id in self._user_call:
            raise CallError(CallErrorCode.BUSY, "User is busy")

    def _require(self, user_id: UUID, call_id: str) -> CallSession:
        session = self._calls.get(call_id)
        if session is None or not session.has_participant(user_id):
            raise CallError(CallErrorCode.INVALID_CALL, "Invalid call", call_id)
        return session

    def _teardown(self, session: CallSession) -> None:
        session.end(self._clock.now())
        self._timers.cancel(session.id)
        self._calls.pop(session.id, None)
        for participant in session.participants:
            if self._user_call.get(participant) == session.id:
                del self._user_call[participant]
            self._presence.set_status(participant, PresenceStatus.ONLINE)

    def _notify_hangup(self, session: CallSession, by: UUID | None, reason: HangupReason) -> None:
        for participant in session.participants:
            if participant == by:
                continue
            self._router.send_to_user(
                participant,
                CALL_HANGUP,
                {"callId": session.id, "hangupBy": by, "reason": reason.value},
            )

    def _expire(self, call_id: str) -> None:
        session = self._calls.get(call_id)
        if session is None or session.status != CallStatus.RINGING:
            return
        self._teardown(session)
        self._notify_hangup(session, None, HangupReason.TIMEOUT)
        logger.info("Call %s timed out while ringing", call_id)

    def _report(self, connection_id: str, exc: CallError) -> None:
        payload: dict[str, Any] = {"error": exc.detail, "code": exc.code.value}
        if exc.call_id is not None:
            payload["callId"] = exc.call_id
        self._router.send_to_connection(connection_id, CALL_ERROR, payload)
