from __future__ import annotations

import uuid

import pytest

from chat_realtime.domain.entities.message import MessageIntent
from chat_realtime.services.message_relay import (
    ACCESS_DENIED,
    MESSAGE_ACK,
    MESSAGE_ERROR,
    MESSAGE_NEW,
    MESSAGE_READ,
    SEND_FAILED,
)
from tests.conftest import connect_user


def text_intent(conversation_id, sender_id, body="hello", temp_id="tmp-1") -> MessageIntent:
    return MessageIntent(
        conversation_id=conversation_id,
        sender_id=sender_id,
        body=body,
        type="text",
        client_temp_id=temp_id,
    )


@pytest.fixture
def pair(uow):
    alice = uow.users.add("Alice")
    bob = uow.users.add("Bob")
    conv = uuid.uuid4()
    uow.conversations.add(conv, alice.id, bob.id)
    return alice, bob, conv


@pytest.mark.asyncio
async def test_send_acks_sender_and_fans_out(gateway, uow, pair):
    alice, bob, conv = pair
    alice_session, alice_conn = await connect_user(gateway, alice)
    _, bob_conn = await connect_user(gateway, bob)
    alice_conn.clear()

    await gateway.send_message(alice_session, text_intent(conv, alice.id))

    [ack] = alice_conn.events(MESSAGE_ACK)
    [new] = bob_conn.events(MESSAGE_NEW)
    assert ack["tempId"] == "tmp-1"
    assert ack["message"] == new["message"]
    assert new["message"]["body"] == "hello"
    assert new["message"]["senderId"] == {"id": alice.id, "displayName": "Alice", "avatarUrl": None}
    assert "tempId" not in new["message"]
    assert alice_conn.events(MESSAGE_NEW) == []
    assert uow.conversations.activity[conv] == uow.messages.messages[0].created_at
    assert uow.commits == 1


@pytest.mark.asyncio
async def test_resend_with_same_temp_id_is_acked_once_stored(gateway, uow, pair):
    alice, bob, conv = pair
    alice_session, alice_conn = await connect_user(gateway, alice)
    _, bob_conn = await connect_user(gateway, bob)

    await gateway.send_message(alice_session, text_intent(conv, alice.id))
    await gateway.send_message(alice_session, text_intent(conv, alice.id))

    acks = alice_conn.events(MESSAGE_ACK)
    assert len(acks) == 2
    assert acks[0]["message"]["id"] == acks[1]["message"]["id"]
    assert len(bob_conn.events(MESSAGE_NEW)) == 1
    assert len(uow.messages.messages) == 1


@pytest.mark.asyncio
async def test_non_member_gets_access_denied(gateway, uow, pair):
    alice, bob, _ = pair
    outsider = uow.users.add("Eve")
    session, conn = await connect_user(gateway, outsider)
    foreign = uuid.uuid4()
    uow.conversations.add(foreign, alice.id, bob.id)

    await gateway.send_message(session, text_intent(foreign, outsider.id))

    assert conn.events(MESSAGE_ERROR) == [{"tempId": "tmp-1", "error": ACCESS_DENIED}]
    assert uow.messages.messages == []


@pytest.mark.asyncio
async def test_store_failure_reports_send_failed(gateway, uow, pair):
    alice, bob, conv = pair
    alice_session, alice_conn = await connect_user(gateway, alice)
    _, bob_conn = await connect_user(gateway, bob)
    uow.messages.fail = True

    await gateway.send_message(alice_session, text_intent(conv, alice.id))

    assert alice_conn.events(MESSAGE_ERROR) == [{"tempId": "tmp-1", "error": SEND_FAILED}]
    assert alice_conn.events(MESSAGE_ACK) == []
    assert bob_conn.events(MESSAGE_NEW) == []
    assert uow.rollbacks == 1


@pytest.mark.asyncio
async def test_send_heals_room_joined_after_connect(gateway, uow):
    alice = uow.users.add("Alice")
    session, conn = await connect_user(gateway, alice)
    conv = uuid.uuid4()
    uow.conversations.add(conv, alice.id)
    assert conv not in gateway.router.rooms_of(session.connection_id)

    await gateway.send_message(session, text_intent(conv, alice.id))

    assert conn.events(MESSAGE_ACK)
    assert conv in gateway.router.rooms_of(session.connection_id)


@pytest.mark.asyncio
async def test_mark_read_notifies_room(gateway, uow, pair, clock):
    alice, bob, conv = pair
    alice_session, alice_conn = await connect_user(gateway, alice)
    bob_session, bob_conn = await connect_user(gateway, bob)
    await gateway.send_message(alice_session, text_intent(conv, alice.id))
    message_id = uow.messages.messages[0].id

    await gateway.mark_read(bob_session, message_id, conv)

    assert alice_conn.events(MESSAGE_READ) == [
        {"messageId": message_id, "userId": bob.id, "readAt": clock.now()},
    ]
    assert bob_conn.events(MESSAGE_READ) == []
    assert (message_id, bob.id) in uow.messages.reads


@pytest.mark.asyncio
async def test_mark_read_of_unknown_message_is_silent(gateway, uow, pair):
    alice, bob, conv = pair
    _, alice_conn = await connect_user(gateway, alice)
    bob_session, _ = await connect_user(gateway, bob)

    assert await gateway.messages.mark_read(uuid.uuid4(), conv, bob.id, bob_session.connection_id) is False
    assert alice_conn.events(MESSAGE_READ) == []


@pytest.mark.asyncio
async def test_mark_read_with_message_from_another_conversation_is_silent(gateway, uow, pair):
    alice, bob, conv = pair
    elsewhere = uuid.uuid4()
    uow.conversations.add(elsewhere, alice.id, bob.id)
    alice_session, alice_conn = await connect_user(gateway, alice)
    bob_session, _ = await connect_user(gateway, bob)
    await gateway.send_message(alice_session, text_intent(elsewhere, alice.id))
    message_id = uow.messages.messages[0].id

    await gateway.mark_read(bob_session, message_id, conv)

    assert alice_conn.events(MESSAGE_READ) == []
    assert uow.messages.reads == {}
