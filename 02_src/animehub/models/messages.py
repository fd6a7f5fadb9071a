"""Message-related data models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from ..errors import ValidationError
from .conversations import ConversationRef
from .users import PublicProfile


class MessageStatus(str, Enum):
    """Delivery status of a message."""

    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"


@dataclass
class Message:
    """A single message in a direct or group conversation."""

    id: str
    sender_id: str
    chat: ConversationRef
    created_at: datetime
    updated_at: datetime
    content: str = ""
    attachment_url: str | None = None
    status: MessageStatus = MessageStatus.SENT
    read_by: list[str] = field(default_factory=list)

    sender: PublicProfile | None = None

    def __post_init__(self) -> None:
        if not self.content and not self.attachment_url:
            raise ValidationError("Message content or attachment is required")


@dataclass
class MessagePage:
    """One page of a conversation's history, oldest first."""

    messages: list[Message]
    current_page: int
    has_more: bool
