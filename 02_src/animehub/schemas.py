"""Wire models shared by the HTTP routes and the realtime channel."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, EmailStr
from pydantic.alias_generators import to_camel

from .models import (
    ConversationSummary,
    DirectMessage,
    GroupChat,
    Message,
    MessagePage,
    PublicProfile,
    Review,
    User,
)


class CamelModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Responses
class ProfileOut(CamelModel):
    id: str
    username: str
    email: str
    profile_picture_url: str | None = None


class UserOut(ProfileOut):
    avatar: str = ""
    created_at: datetime
    updated_at: datetime


class MessageOut(CamelModel):
    id: str
    chat_id: str
    chat_kind: str
    sender_id: str
    sender: ProfileOut | None = None
    content: str
    attachment_url: str | None = None
    status: str
    read_by: list[str]
    created_at: datetime
    updated_at: datetime


class MessagePageOut(CamelModel):
    messages: list[MessageOut]
    current_page: int
    has_more: bool


class DirectConversationOut(CamelModel):
    id: str
    kind: str = "direct"
    member_ids: list[str]
    members: list[ProfileOut]
    last_message_id: str | None = None
    last_message: MessageOut | None = None
    created_at: datetime
    updated_at: datetime


class ConversationSummaryOut(DirectConversationOut):
    other_member: ProfileOut | None = None


class GroupChatOut(CamelModel):
    id: str
    kind: str = "group"
    name: str
    admin_id: str
    admin: ProfileOut | None = None
    member_ids: list[str]
    members: list[ProfileOut]
    last_message_id: str | None = None
    last_message: MessageOut | None = None
    created_at: datetime
    updated_at: datetime


class ReviewOut(CamelModel):
    id: str
    user_id: str
    author: ProfileOut | None = None
    anime_title: str
    review_text: str
    rating: int
    anime_image_url: str = ""
    created_at: datetime
    updated_at: datetime


class StatusOut(CamelModel):
    success: bool = True
    message: str


class UploadOut(CamelModel):
    url: str


# Requests
class StartConversationRequest(CamelModel):
    other_user_id: str


class SendMessageRequest(CamelModel):
    content: str | None = None
    attachment_url: str | None = None


class GroupCreateRequest(CamelModel):
    name: str
    members: list[str] = []


class GroupUpdateRequest(CamelModel):
    name: str | None = None
    members: list[str] | None = None


class RegisterRequest(CamelModel):
    username: str
    email: EmailStr
    password: str


class LoginRequest(CamelModel):
    email: str
    password: str


class UpdateProfileRequest(CamelModel):
    username: str | None = None
    email: EmailStr | None = None


class ChangePasswordRequest(CamelModel):
    current_password: str
    new_password: str


# Realtime frames
class SocketFrame(CamelModel):
    event: str
    data: Any = None


class SendMessageEvent(CamelModel):
    """Client `sendMessage` payload. Sender fields are taken from the session."""

    conversation_id: str
    content: str | None = None
    attachment: str | None = None
    receiver_id: str | None = None


# Builders
def profile_out(profile: PublicProfile | None) -> ProfileOut | None:
    if profile is None:
        return None
    return ProfileOut(
        id=profile.id,
        username=profile.username,
        email=profile.email,
        profile_picture_url=profile.profile_picture_url,
    )


def user_out(user: User) -> UserOut:
    return UserOut(
        id=user.id,
        username=user.username,
        email=user.email,
        profile_picture_url=user.profile_picture_url,
        avatar=user.avatar,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


def message_out(message: Message | None) -> MessageOut | None:
    if message is None:
        return None
    return MessageOut(
        id=message.id,
        chat_id=message.chat.id,
        chat_kind=message.chat.kind.value,
        sender_id=message.sender_id,
        sender=profile_out(message.sender),
        content=message.content,
        attachment_url=message.attachment_url,
        status=message.status.value,
        read_by=list(message.read_by),
        created_at=message.created_at,
        updated_at=message.updated_at,
    )


def message_page_out(page: MessagePage) -> MessagePageOut:
    return MessagePageOut(
        messages=[message_out(m) for m in page.messages],
        current_page=page.current_page,
        has_more=page.has_more,
    )


def direct_out(conversation: DirectMessage) -> DirectConversationOut:
    return DirectConversationOut(
        id=conversation.id,
        member_ids=list(conversation.member_ids),
        members=[profile_out(p) for p in conversation.members],
        last_message_id=conversation.last_message_id,
        last_message=message_out(conversation.last_message),
        created_at=conversation.created_at,
        updated_at=conversation.updated_at,
    )


def summary_out(summary: ConversationSummary) -> ConversationSummaryOut:
    base = direct_out(summary.conversation)
    return ConversationSummaryOut(
        **base.model_dump(), other_member=profile_out(summary.other_member)
    )


def group_out(group: GroupChat) -> GroupChatOut:
    return GroupChatOut(
        id=group.id,
        name=group.name,
        admin_id=group.admin_id,
        admin=profile_out(group.admin),
        member_ids=list(group.member_ids),
        members=[profile_out(p) for p in group.members],
        last_message_id=group.last_message_id,
        last_message=message_out(group.last_message),
        created_at=group.created_at,
        updated_at=group.updated_at,
    )


def review_out(review: Review) -> ReviewOut:
    return ReviewOut(
        id=review.id,
        user_id=review.user_id,
        author=profile_out(review.author),
        anime_title=review.anime_title,
        review_text=review.review_text,
        rating=review.rating,
        anime_image_url=review.anime_image_url,
        created_at=review.created_at,
        updated_at=review.updated_at,
    )
