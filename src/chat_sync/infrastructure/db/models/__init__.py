"""Import all models so metadata.create_all can discover them via Base.metadata."""
from chat_sync.infrastructure.db.models.conversation import ConversationMemberModel, ConversationModel
from chat_sync.infrastructure.db.models.message import MessageModel
from chat_sync.infrastructure.db.models.profile import ProfileModel

__all__ = [
    "ConversationMemberModel",
    "ConversationModel",
    "MessageModel",
    "ProfileModel",
]
