from __future__ import annotations

from typing import Any, Protocol


class Connection(Protocol):
    """Outbound side of one live client connection.

    ``send`` must not suspend: it queues the event for delivery so that
    fan-out never yields to the event loop mid-handler.
    """

    connection_id: str

    def send(self, event: str, data: dict[str, Any]) -> None: ...
