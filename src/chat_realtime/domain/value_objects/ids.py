from __future__ import annotations

import uuid
from typing import NewType

CallId = NewType("CallId", str)
ConnectionId = NewType("ConnectionId", str)


def new_call_id() -> CallId:
    return CallId(f"call_{uuid.uuid4().hex}")


def new_connection_id() -> ConnectionId:
    return ConnectionId(uuid.uuid4().hex)
