"""Conversation data models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Union

from ..errors import ValidationError
from .users import PublicProfile

if TYPE_CHECKING:
    from .messages import Message


class ConversationKind(str, Enum):
    """Conversation types a message can belong to."""

    DIRECT = "direct"
    GROUP = "group"


@dataclass(frozen=True)
class ConversationRef:
    """Tagged reference to a conversation of either kind."""

    kind: ConversationKind
    id: str


@dataclass
class DirectMessage:
    """A two-party conversation."""

    id: str
    member_ids: list[str]
    created_at: datetime
    updated_at: datetime
    last_message_id: str | None = None

    # Resolved on read, never persisted
    members: list[PublicProfile] = field(default_factory=list)
    last_message: "Message | None" = None

    def __post_init__(self) -> None:
        if len(self.member_ids) != 2 or self.member_ids[0] == self.member_ids[1]:
            raise ValidationError("A direct conversation must have exactly two distinct members")

    @property
    def ref(self) -> ConversationRef:
        return ConversationRef(ConversationKind.DIRECT, self.id)

    def has_member(self, user_id: str) -> bool:
        return user_id in self.member_ids

    def other_member_id(self, user_id: str) -> str:
        a, b = self.member_ids
        return b if a == user_id else a


@dataclass
class GroupChat:
    """An n-party conversation with one admin."""

    id: str
    name: str
    admin_id: str
    member_ids: list[str]
    created_at: datetime
    updated_at: datetime
    last_message_id: str | None = None

    members: list[PublicProfile] = field(default_factory=list)
    admin: PublicProfile | None = None
    last_message: "Message | None" = None

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValidationError("Group name is required")
        if self.admin_id not in self.member_ids:
            raise ValidationError("Group admin must be a member")

    @property
    def ref(self) -> ConversationRef:
        return ConversationRef(ConversationKind.GROUP, self.id)

    def has_member(self, user_id: str) -> bool:
        return user_id in self.member_ids


Conversation = Union[DirectMessage, GroupChat]


@dataclass
class ConversationSummary:
    """A direct conversation as seen from one of its members."""

    conversation: DirectMessage
    other_member: PublicProfile | None
