"""Core data models for AnimeHub."""

from .conversations import (
    Conversation,
    ConversationKind,
    ConversationRef,
    ConversationSummary,
    DirectMessage,
    GroupChat,
)
from .events import BusMessage, Topic
from .files import IncomingFile, StoredFile, UploadCategory
from .ids import is_valid_id, new_id
from .messages import Message, MessagePage, MessageStatus
from .reviews import Review
from .users import PublicProfile, User

__all__ = [
    # Users
    "User",
    "PublicProfile",
    # Conversations
    "Conversation",
    "ConversationKind",
    "ConversationRef",
    "ConversationSummary",
    "DirectMessage",
    "GroupChat",
    # Messages
    "Message",
    "MessagePage",
    "MessageStatus",
    # Reviews
    "Review",
    # Files
    "IncomingFile",
    "StoredFile",
    "UploadCategory",
    # Events
    "BusMessage",
    "Topic",
    # Ids
    "new_id",
    "is_valid_id",
]
