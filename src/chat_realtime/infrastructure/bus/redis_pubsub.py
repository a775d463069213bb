"""Redis Pub/Sub subscriber feeding HTTP-layer events into live rooms."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

import redis.asyncio as aioredis

from chat_realtime.infrastructure.bus.serializer import deserialize_event

logger = logging.getLogger(__name__)

OnEventCallback = Callable[[str, dict[str, Any]], Any]


class RedisPubSubSubscriber:
    """Background task that listens to a Redis channel and dispatches events."""

    def __init__(
        self,
        redis: aioredis.Redis,
        channel: str,
        callback: OnEventCallback,
    ) -> None:
        self._redis = redis
        self._channel = channel
        self._callback = callback
        self._task: asyncio.Task[None] | None = None

    async def start(self) -> None:
        self._task = asyncio.create_task(self._listen(), name="redis-pubsub-subscriber")
        logger.info("Redis Pub/Sub subscriber started on channel=%s", self._channel)

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            logger.info("Redis Pub/Sub subscriber stopped")

    async def _listen(self) -> None:
        pubsub = self._redis.pubsub()
        try:
            await pubsub.subscribe(self._channel)
            async for message in pubsub.listen():
                if message["type"] != "message":
                    continue
                try:
                    event_type, data = deserialize_event(message["data"])
                    self._callback(event_type, data)
                except Exception:
                    logger.exception("Error processing pubsub message")
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Redis Pub/Sub listener stopped on channel=%s", self._channel)
        finally:
            await pubsub.aclose()
