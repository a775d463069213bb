"""Shared test fixtures."""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable
from uuid import UUID

import pytest

from chat_realtime.domain.entities.message import Message, MessageIntent
from chat_realtime.domain.entities.user import UserIdentity
from chat_realtime.services.gateway import ClientSession, RealtimeGateway


@dataclass
class FakeClock:
    current: datetime = field(default_factory=lambda: datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc))

    def now(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


@dataclass
class FakeConnection:
    connection_id: str
    sent: list[tuple[str, dict[str, Any]]] = field(default_factory=list)

    def send(self, event: str, data: dict[str, Any]) -> None:
        self.sent.append((event, data))

    def events(self, name: str) -> list[dict[str, Any]]:
        return [data for event, data in self.sent if event == name]

    def names(self) -> list[str]:
        return [event for event, _ in self.sent]

    def clear(self) -> None:
        self.sent.clear()


@dataclass
class FakeConversationDirectory:
    members: dict[UUID, set[UUID]] = field(default_factory=dict)
    activity: dict[UUID, datetime] = field(default_factory=dict)
    reads: dict[tuple[UUID, UUID], datetime] = field(default_factory=dict)
    fail: bool = False
    # runs inside is_member, standing in for work interleaved during the await
    on_lookup: Callable[[], None] | None = None

    def add(self, conversation_id: UUID, *user_ids: UUID) -> None:
        self.members.setdefault(conversation_id, set()).update(user_ids)

    async def find_user_conversations(self, user_id: UUID) -> list[UUID]:
        return [cid for cid, users in self.members.items() if user_id in users]

    async def is_member(self, conversation_id: UUID, user_id: UUID) -> bool:
        if self.fail:
            raise RuntimeError("membership lookup failed")
        if self.on_lookup is not None:
            hook, self.on_lookup = self.on_lookup, None
            hook()
        return user_id in self.members.get(conversation_id, set())

    async def touch_activity(self, conversation_id: UUID, ts: datetime) -> None:
        self.activity[conversation_id] = ts

    async def mark_read(self, conversation_id: UUID, user_id: UUID, ts: datetime) -> None:
        self.reads[(conversation_id, user_id)] = ts


@dataclass
class FakeMessageStore:
    messages: list[Message] = field(default_factory=list)
    reads: dict[tuple[UUID, UUID], datetime] = field(default_factory=dict)
    fail: bool = False

    async def save_message(self, intent: MessageIntent) -> tuple[Message, bool]:
        if self.fail:
            raise RuntimeError("database unavailable")
        if intent.client_temp_id is not None:
            for m in self.messages:
                if (
                    m.conversation_id == intent.conversation_id
                    and m.sender_id == intent.sender_id
                    and m.client_temp_id == intent.client_temp_id
                ):
                    return m, False
        message = Message(
            id=uuid.uuid4(),
            conversation_id=intent.conversation_id,
            sender_id=intent.sender_id,
            type=intent.type,
            body=intent.body,
            file_url=intent.file_url,
            file_name=intent.file_name,
            file_size=intent.file_size,
            meta=intent.meta,
            client_temp_id=intent.client_temp_id,
            created_at=datetime.now(timezone.utc),
        )
        self.messages.append(message)
        return message, True

    async def mark_read(self, message_id: UUID, conversation_id: UUID, user_id: UUID, ts: datetime) -> bool:
        if not any(m.id == message_id and m.conversation_id == conversation_id for m in self.messages):
            return False
        self.reads.setdefault((message_id, user_id), ts)
        return True


@dataclass
class FakeUserDirectory:
    users: dict[UUID, UserIdentity] = field(default_factory=dict)
    last_active: dict[UUID, datetime] = field(default_factory=dict)

    def add(self, display_name: str, user_id: UUID | None = None) -> UserIdentity:
        identity = UserIdentity(id=user_id or uuid.uuid4(), display_name=display_name)
        self.users[identity.id] = identity
        return identity

    async def get_by_id(self, user_id: UUID) -> UserIdentity | None:
        return self.users.get(user_id)

    async def touch_last_active(self, user_id: UUID, ts: datetime) -> None:
        self.last_active[user_id] = ts


@dataclass
class FakeUoW:
    """In-memory UoW for unit tests."""
    conversations: FakeConversationDirectory = field(default_factory=FakeConversationDirectory)
    messages: FakeMessageStore = field(default_factory=FakeMessageStore)
    users: FakeUserDirectory = field(default_factory=FakeUserDirectory)
    commits: int = 0
    rollbacks: int = 0

    async def commit(self) -> None:
        self.commits += 1

    async def rollback(self) -> None:
        self.rollbacks += 1

    async def __aenter__(self) -> FakeUoW:
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        if exc_type is not None:
            await self.rollback()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def uow() -> FakeUoW:
    return FakeUoW()


@pytest.fixture
def gateway(uow: FakeUoW, clock: FakeClock) -> RealtimeGateway:
    return RealtimeGateway(lambda: uow, clock=clock, offline_grace=0.05)


async def connect_user(
    gateway: RealtimeGateway,
    identity: UserIdentity,
    connection_id: str | None = None,
) -> tuple[ClientSession, FakeConnection]:
    conn = FakeConnection(connection_id or f"conn-{identity.display_name.lower()}")
    session = await gateway.connect(conn, identity.id)
    assert session is not None
    return session, conn
