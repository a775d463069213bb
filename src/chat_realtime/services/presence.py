"""Presence transitions: online, in-call and (delayed) offline."""
from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from chat_realtime.application.ports.clock import Clock
from chat_realtime.domain.value_objects.enums import PresenceStatus
from chat_realtime.services.connection_registry import ConnectionRegistry
from chat_realtime.services.room_router import RoomRouter
from chat_realtime.services.timers import KeyedTimers

logger = logging.getLogger(__name__)

PRESENCE_UPDATE = "presence:update"


class PresenceBroadcaster:
    """Broadcasts presence changes to every other connection.

    Only state changes are broadcast. Going offline is delayed by a grace
    window so that a quick reconnect does not make the user flap.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        router: RoomRouter,
        clock: Clock,
        offline_grace: float = 5.0,
        timers: KeyedTimers | None = None,
    ) -> None:
        self._registry = registry
        self._router = router
        self._clock = clock
        self._offline_grace = offline_grace
        self._timers = timers or KeyedTimers("presence-offline")

    def announce_online(self, user_id: UUID) -> bool:
        """Broadcast ``online`` for a freshly registered user.

        Returns False when a pending offline broadcast was cancelled instead:
        other users never saw the user leave.
        """
        if self._timers.cancel(user_id):
            logger.debug("User %s reconnected within grace window", user_id)
            return False
        self._publish(user_id, PresenceStatus.ONLINE)
        return True

    def ping(self, user_id: UUID) -> bool:
        return self._registry.touch(user_id)

    def set_status(self, user_id: UUID, status: PresenceStatus) -> bool:
        if not self._registry.set_status(user_id, status):
            return False
        self._publish(user_id, status)
        return True

    def schedule_offline(self, user_id: UUID) -> None:
        self._timers.schedule(user_id, self._offline_grace, lambda: self._go_offline(user_id))

    def offline_pending(self, user_id: UUID) -> bool:
        return self._timers.pending(user_id)

    def cancel_all(self) -> None:
        self._timers.cancel_all()

    def _go_offline(self, user_id: UUID) -> None:
        if self._registry.is_online(user_id):
            return
        self._publish(user_id, PresenceStatus.OFFLINE)

    def _publish(self, user_id: UUID, status: PresenceStatus) -> None:
        record = self._registry.get(user_id)
        exclude = record.connection_id if record else None
        payload: dict[str, Any] = {
            "userId": user_id,
            "status": status.value,
            "lastActiveAt": self._clock.now(),
        }
        self._router.broadcast(PRESENCE_UPDATE, payload, exclude_connection_id=exclude)
        logger.info("Presence %s -> %s", user_id, status.value)
