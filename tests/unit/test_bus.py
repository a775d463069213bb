from __future__ import annotations

import json

import pytest

from chat_realtime.infrastructure.bus.serializer import deserialize_event


def test_deserialize_event_envelope():
    raw = json.dumps({"event": "message.created", "data": {"conversationId": "c"}})
    assert deserialize_event(raw) == ("message.created", {"conversationId": "c"})
    assert deserialize_event(raw.encode()) == ("message.created", {"conversationId": "c"})


@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        json.dumps({"data": {}}),
        json.dumps({"event": "x", "data": [1, 2]}),
    ],
)
def test_deserialize_event_rejects_malformed(raw):
    with pytest.raises((ValueError, KeyError)):
        deserialize_event(raw)
