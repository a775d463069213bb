from __future__ import annotations

import uuid
from datetime import datetime, timezone

import pytest

from chat_realtime.application.exceptions import InvalidTransitionError
from chat_realtime.domain.entities.call import CallSession
from chat_realtime.domain.value_objects.enums import CallStatus, CallType

NOW = datetime(2026, 1, 1, tzinfo=timezone.utc)


def make_call() -> CallSession:
    a, b = uuid.uuid4(), uuid.uuid4()
    return CallSession(
        id="call_x",
        participants=(a, b),
        initiator=a,
        type=CallType.VIDEO,
        conversation_id=uuid.uuid4(),
        start_time=NOW,
    )


def test_new_call_is_ringing():
    call = make_call()
    assert call.status == CallStatus.RINGING
    assert call.callee == call.participants[1]


def test_ringing_active_ended():
    call = make_call()
    call.answer(NOW)
    assert call.status == CallStatus.ACTIVE
    assert call.answer_time == NOW
    call.end(NOW)
    assert call.status == CallStatus.ENDED
    assert call.end_time == NOW


def test_ringing_can_end_directly():
    call = make_call()
    call.end(NOW)
    assert call.status == CallStatus.ENDED
    assert call.answer_time is None


def test_ended_call_rejects_every_transition():
    call = make_call()
    call.end(NOW)
    with pytest.raises(InvalidTransitionError):
        call.answer(NOW)
    with pytest.raises(InvalidTransitionError):
        call.end(NOW)


def test_active_call_cannot_be_answered_again():
    call = make_call()
    call.answer(NOW)
    with pytest.raises(InvalidTransitionError):
        call.answer(NOW)


def test_participants_must_be_two_distinct_users():
    a = uuid.uuid4()
    with pytest.raises(ValueError):
        CallSession(
            id="call_y",
            participants=(a, a),
            initiator=a,
            type=CallType.VOICE,
            conversation_id=uuid.uuid4(),
            start_time=NOW,
        )


def test_other_participant():
    call = make_call()
    a, b = call.participants
    assert call.other_participant(a) == b
    assert call.other_participant(b) == a
    with pytest.raises(ValueError):
        call.other_participant(uuid.uuid4())
