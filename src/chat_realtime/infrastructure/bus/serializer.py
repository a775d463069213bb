from __future__ import annotations

import json
from typing import Any


def deserialize_event(raw: str | bytes) -> tuple[str, dict[str, Any]]:
    """Unpack a ``{"event": ..., "data": {...}}`` envelope."""
    data = json.loads(raw)
    event, payload = data["event"], data["data"]
    if not isinstance(payload, dict):
        raise ValueError(f"event {event!r} carries a non-object payload")
    return event, payload
