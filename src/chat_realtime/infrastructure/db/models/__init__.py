"""Import all models so Alembic can discover them via Base.metadata."""
from chat_realtime.infrastructure.db.models.conversation import ConversationModel
from chat_realtime.infrastructure.db.models.member import ConversationMemberModel
from chat_realtime.infrastructure.db.models.message import MessageModel
from chat_realtime.infrastructure.db.models.message_read import MessageReadModel
from chat_realtime.infrastructure.db.models.user import UserModel

__all__ = [
    "ConversationMemberModel",
    "ConversationModel",
    "MessageModel",
    "MessageReadModel",
    "UserModel",
]
