from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from typing import Callable, Protocol

from chat_realtime.application.repositories.conversation import ConversationDirectory
from chat_realtime.application.repositories.message import MessageStore
from chat_realtime.application.repositories.user import UserDirectory


class UnitOfWork(Protocol):
    conversations: ConversationDirectory
    messages: MessageStore
    users: UserDirectory

    async def commit(self) -> None: ...
    async def rollback(self) -> None: ...


# Each realtime operation opens its own unit of work.
UnitOfWorkFactory = Callable[[], AbstractAsyncContextManager[UnitOfWork]]
