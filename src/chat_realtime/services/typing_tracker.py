from __future__ import annotations

import logging
from datetime import timedelta
from uuid import UUID

from chat_realtime.services.connection_registry import ConnectionRegistry
from chat_realtime.services.room_router import RoomRouter

logger = logging.getLogger(__name__)

TYPING = "typing"


class TypingTracker:
    """Who is typing in which conversation.

    Every start for a (conversation, user) pair is closed by exactly one
    ``isTyping: false`` broadcast: explicit stop, leave, disconnect or the
    staleness sweep, whichever comes first.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        router: RoomRouter,
        stale_after: float = 60.0,
    ) -> None:
        self._registry = registry
        self._router = router
        self._stale_after = timedelta(seconds=stale_after)
        self._typing: dict[UUID, set[UUID]] = {}

    def start(
        self,
        conversation_id: UUID,
        user_id: UUID,
        display_name: str | None,
        exclude_connection_id: str | None = None,
    ) -> bool:
        """Mark the user typing and broadcast. Return True if newly typing."""
        users = self._typing.setdefault(conversation_id, set())
        added = user_id not in users
        users.add(user_id)
        self._emit(conversation_id, user_id, display_name, True, exclude_connection_id)
        return added

    def stop(
        self,
        conversation_id: UUID,
        user_id: UUID,
        display_name: str | None,
        exclude_connection_id: str | None = None,
    ) -> bool:
        """Clear the typing flag. Broadcasts only if the user was typing."""
        if not self._remove(conversation_id, user_id):
            return False
        self._emit(conversation_id, user_id, display_name, False, exclude_connection_id)
        return True

    def clear_user(
        self,
        user_id: UUID,
        display_name: str | None,
        exclude_connection_id: str | None = None,
    ) -> list[UUID]:
        """Stop the user typing everywhere, one broadcast per conversation."""
        cleared = [cid for cid, users in self._typing.items() if user_id in users]
        for conversation_id in cleared:
            self.stop(conversation_id, user_id, display_name, exclude_connection_id)
        return cleared

    def sweep(self) -> int:
        """Evict typing users whose connection is gone or stale."""
        stale = set(self._registry.stale_user_ids(self._stale_after))
        evicted = 0
        for conversation_id, users in list(self._typing.items()):
            for user_id in list(users):
                record = self._registry.get(user_id)
                if record is not None and user_id not in stale:
                    continue
                name = record.display_name if record else None
                exclude = record.connection_id if record else None
                if self.stop(conversation_id, user_id, name, exclude):
                    evicted += 1
        if evicted:
            logger.info("Typing sweep evicted %d stale entries", evicted)
        return evicted

    def is_typing(self, conversation_id: UUID, user_id: UUID) -> bool:
        return user_id in self._typing.get(conversation_id, ())

    def typing_users(self, conversation_id: UUID) -> frozenset[UUID]:
        return frozenset(self._typing.get(conversation_id, ()))

    def conversations(self) -> frozenset[UUID]:
        return frozenset(self._typing)

    def _remove(self, conversation_id: UUID, user_id: UUID) -> bool:
        users = self._typing.get(conversation_id)
        if not users or user_id not in users:
            return False
        users.discard(user_id)
        if not users:
            del self._typing[conversation_id]
        return True

    def _emit(
        self,
        conversation_id: UUID,
        user_id: UUID,
        display_name: str | None,
        is_typing: bool,
        exclude_connection_id: str | None,
    ) -> None:
        self._router.broadcast_to_room(
            conversation_id,
            TYPING,
            {
                "conversationId": conversation_id,
                "userId": user_id,
                "displayName": display_name,
                "isTyping": is_typing,
            },
            exclude_connection_id=exclude_connection_id,
        )
