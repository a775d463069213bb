"""FastAPI WebSocket adapter for the realtime transport port."""
from __future__ import annotations

import asyncio
import logging
from typing import Any

from fastapi import WebSocket

from chat_realtime.domain.value_objects.ids import new_connection_id
from chat_realtime.infrastructure.ws.protocol import WsOutbound

logger = logging.getLogger(__name__)


class WebSocketConnection:
    """Queues outbound events and writes them from a dedicated task.

    ``send`` never suspends, so room fan-out stays atomic with respect to
    other handlers, and the queue keeps per-connection order.
    """

    def __init__(self, ws: WebSocket, connection_id: str | None = None) -> None:
        self.connection_id = connection_id or new_connection_id()
        self._ws = ws
        self._queue: asyncio.Queue[str | None] = asyncio.Queue()
        self._writer: asyncio.Task[None] | None = None
        self._closed = False

    def start(self) -> None:
        self._writer = asyncio.create_task(
            self._write_loop(), name=f"ws-writer-{self.connection_id}",
        )

    def send(self, event: str, data: dict[str, Any]) -> None:
        if self._closed:
            raise ConnectionError(f"connection {self.connection_id} is closed")
        self._queue.put_nowait(WsOutbound(type=event, data=data).model_dump_json())

    async def close(self) -> None:
        """Flush what is queued, then stop the writer."""
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(None)
        if self._writer:
            try:
                await asyncio.wait_for(self._writer, timeout=1.0)
            except (asyncio.TimeoutError, asyncio.CancelledError):
                self._writer.cancel()

    async def _write_loop(self) -> None:
        while True:
            raw = await self._queue.get()
            if raw is None:
                return
            try:
                await self._ws.send_text(raw)
            except Exception:
                logger.debug("WS write failed on %s", self.connection_id, exc_info=True)
                self._closed = True
                return
