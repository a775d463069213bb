from __future__ import annotations

import uuid

import pytest

from chat_realtime.services.connection_registry import ConnectionRegistry
from chat_realtime.services.room_router import RoomRouter
from chat_realtime.services.typing_tracker import TYPING, TypingTracker
from tests.conftest import FakeClock, FakeConnection


@pytest.fixture
def room(clock: FakeClock):
    registry = ConnectionRegistry(clock)
    router = RoomRouter()
    tracker = TypingTracker(registry, router, stale_after=60)
    conversation_id = uuid.uuid4()
    alice, bob = uuid.uuid4(), uuid.uuid4()
    conns = {}
    for user_id, cid in ((alice, "a"), (bob, "b")):
        conn = FakeConnection(cid)
        registry.register(user_id, cid, cid.upper())
        router.attach(conn, user_id)
        router.join_room(cid, conversation_id)
        conns[user_id] = conn
    return tracker, registry, conversation_id, alice, bob, conns


def test_start_broadcasts_to_others(room):
    tracker, _, conv, alice, bob, conns = room

    assert tracker.start(conv, alice, "A", "a") is True
    assert tracker.start(conv, alice, "A", "a") is False

    assert conns[alice].sent == []
    assert conns[bob].events(TYPING) == [
        {"conversationId": conv, "userId": alice, "displayName": "A", "isTyping": True},
    ] * 2
    assert tracker.typing_users(conv) == {alice}


def test_stop_only_broadcasts_when_typing(room):
    tracker, _, conv, alice, bob, conns = room

    assert tracker.stop(conv, alice, "A", "a") is False
    assert conns[bob].sent == []

    tracker.start(conv, alice, "A", "a")
    conns[bob].clear()
    assert tracker.stop(conv, alice, "A", "a") is True
    assert tracker.stop(conv, alice, "A", "a") is False
    assert [d["isTyping"] for d in conns[bob].events(TYPING)] == [False]
    assert conv not in tracker.conversations()


def test_clear_user_stops_everywhere(room):
    tracker, _, conv, alice, bob, conns = room
    other = uuid.uuid4()
    tracker.start(conv, alice, "A", "a")
    tracker.start(other, alice, "A", "a")
    tracker.start(conv, bob, "B", "b")

    cleared = tracker.clear_user(alice, "A", "a")

    assert set(cleared) == {conv, other}
    assert not tracker.is_typing(conv, alice)
    assert tracker.is_typing(conv, bob)
    assert tracker.conversations() == {conv}


def test_sweep_evicts_stale_and_disconnected(room, clock):
    tracker, registry, conv, alice, bob, conns = room
    tracker.start(conv, alice, "A", "a")
    tracker.start(conv, bob, "B", "b")

    clock.advance(61)
    registry.touch(bob)
    conns[bob].clear()

    assert tracker.sweep() == 1
    assert not tracker.is_typing(conv, alice)
    assert tracker.is_typing(conv, bob)
    assert conns[bob].events(TYPING)[-1]["isTyping"] is False
    # the evicted user's own connection is not told
    assert conns[alice].events(TYPING)[-1]["isTyping"] is True


def test_sweep_evicts_unregistered_user(room):
    tracker, registry, conv, alice, bob, conns = room
    tracker.start(conv, alice, "A", "a")
    registry.unregister(alice)
    conns[bob].clear()

    assert tracker.sweep() == 1
    assert conns[bob].events(TYPING) == [
        {"conversationId": conv, "userId": alice, "displayName": None, "isTyping": False},
    ]
