"""Conversation lookup, creation and membership rules."""

from datetime import datetime, timezone
from typing import Awaitable, Callable, Protocol

from ..errors import Forbidden, NotFound, ValidationError
from ..logging_config import get_logger
from ..models import (
    Conversation,
    ConversationKind,
    ConversationRef,
    ConversationSummary,
    DirectMessage,
    GroupChat,
    PublicProfile,
    is_valid_id,
    new_id,
)
from ..storage import IStorage

logger = get_logger(__name__)


ConversationLookup = Callable[[str], Awaitable[Conversation | None]]


class IConversationResolver(Protocol):
    """Finds conversations and decides who belongs to them."""

    async def get_or_create_direct(self, user_a: str, user_b: str) -> DirectMessage:
        """Return the direct conversation of a pair, creating it on first contact."""
        ...

    async def list_conversations(self, user_id: str) -> list[ConversationSummary]:
        """Direct conversations of a user, most recent first."""
        ...

    async def get_conversation(self, ref: ConversationRef) -> Conversation | None:
        """Resolve a tagged reference."""
        ...

    async def resolve_ref(self, conversation_id: str) -> ConversationRef:
        """Find which kind of conversation an id belongs to."""
        ...

    async def is_participant(self, ref: ConversationRef, user_id: str) -> bool:
        """Membership check used as the authorization gate."""
        ...

    async def require_participant(
        self, ref: ConversationRef, user_id: str
    ) -> Conversation:
        """Return the conversation or raise NotFound / Forbidden."""
        ...


class ConversationResolver:
    """Conversation resolver backed by IStorage."""

    def __init__(self, storage: IStorage):
        self._storage = storage
        self._lookups: dict[ConversationKind, ConversationLookup] = {
            ConversationKind.DIRECT: storage.get_direct,
            ConversationKind.GROUP: storage.get_group,
        }

    # Lookup registry
    async def get_conversation(self, ref: ConversationRef) -> Conversation | None:
        if not is_valid_id(ref.id):
            return None
        return await self._lookups[ref.kind](ref.id)

    async def resolve_ref(self, conversation_id: str) -> ConversationRef:
        if not is_valid_id(conversation_id):
            raise ValidationError("Invalid conversation ID")

        for kind, lookup in self._lookups.items():
            if await lookup(conversation_id) is not None:
                return ConversationRef(kind, conversation_id)

        raise NotFound("Conversation not found")

    async def is_participant(self, ref: ConversationRef, user_id: str) -> bool:
        conversation = await self.get_conversation(ref)
        return conversation is not None and conversation.has_member(user_id)

    async def require_participant(
        self, ref: ConversationRef, user_id: str
    ) -> Conversation:
        if not is_valid_id(ref.id):
            raise ValidationError("Invalid conversation ID")

        conversation = await self.get_conversation(ref)
        if conversation is None:
            raise NotFound("Conversation not found")
        if not conversation.has_member(user_id):
            logger.info(
                "Rejected non-member access",
                extra={"context": {"conversation_id": ref.id, "user_id": user_id}},
            )
            raise Forbidden("You are not a participant of this conversation")
        return conversation

    # Direct conversations
    async def get_or_create_direct(self, user_a: str, user_b: str) -> DirectMessage:
        if not is_valid_id(user_a) or not is_valid_id(user_b):
            raise ValidationError("Invalid user ID")
        if user_a == user_b:
            raise ValidationError("Cannot start a conversation with yourself")

        users = await self._storage.get_users([user_a, user_b])
        if user_a not in users or user_b not in users:
            raise NotFound("User not found")

        conversation = await self._storage.find_direct(user_a, user_b)
        if conversation is None:
            now = datetime.now(timezone.utc)
            conversation = await self._storage.get_or_insert_direct(
                DirectMessage(
                    id=new_id(),
                    member_ids=[user_a, user_b],
                    created_at=now,
                    updated_at=now,
                )
            )
            logger.info(
                "Direct conversation ready",
                extra={"context": {"conversation_id": conversation.id}},
            )

        conversation.members = [users[uid].public_profile() for uid in conversation.member_ids]
        await self._attach_last_message(conversation)
        return conversation

    async def list_conversations(self, user_id: str) -> list[ConversationSummary]:
        conversations = await self._storage.list_directs_for_user(user_id)
        profiles = await self._profiles(
            [uid for c in conversations for uid in c.member_ids]
        )

        summaries = []
        for conversation in conversations:
            conversation.members = [
                profiles[uid] for uid in conversation.member_ids if uid in profiles
            ]
            await self._attach_last_message(conversation)
            summaries.append(
                ConversationSummary(
                    conversation=conversation,
                    other_member=profiles.get(conversation.other_member_id(user_id)),
                )
            )
        return summaries

    # Group chats
    async def create_group(
        self, admin_id: str, name: str, member_ids: list[str]
    ) -> GroupChat:
        if not name or not name.strip():
            raise ValidationError("Group name is required")

        members = await self._checked_members(member_ids, admin_id)
        now = datetime.now(timezone.utc)
        group = GroupChat(
            id=new_id(),
            name=name.strip(),
            admin_id=admin_id,
            member_ids=members,
            created_at=now,
            updated_at=now,
        )
        await self._storage.insert_group(group)
        logger.info(
            "Group chat created",
            extra={"context": {"group_id": group.id, "members": len(members)}},
        )
        return await self._populate_group(group)

    async def list_groups(self, user_id: str) -> list[GroupChat]:
        groups = await self._storage.list_groups_for_user(user_id)
        return [await self._populate_group(group) for group in groups]

    async def get_group(self, group_id: str, requester_id: str) -> GroupChat:
        group = await self.require_participant(
            ConversationRef(ConversationKind.GROUP, group_id), requester_id
        )
        return await self._populate_group(group)

    async def update_group(
        self,
        group_id: str,
        requester_id: str,
        name: str | None = None,
        member_ids: list[str] | None = None,
    ) -> GroupChat:
        group = await self._require_admin(group_id, requester_id)

        if name is not None:
            if not name.strip():
                raise ValidationError("Group name is required")
            group.name = name.strip()
        if member_ids is not None:
            group.member_ids = await self._checked_members(member_ids, group.admin_id)

        group.updated_at = datetime.now(timezone.utc)
        await self._storage.update_group(group)
        return await self._populate_group(group)

    async def delete_group(self, group_id: str, requester_id: str) -> None:
        await self._require_admin(group_id, requester_id)
        await self._storage.delete_group(group_id)
        logger.info("Group chat deleted", extra={"context": {"group_id": group_id}})

    # Helpers
    async def _require_admin(self, group_id: str, requester_id: str) -> GroupChat:
        if not is_valid_id(group_id):
            raise ValidationError("Invalid group ID")

        group = await self._storage.get_group(group_id)
        if group is None:
            raise NotFound("Group chat not found")
        if group.admin_id != requester_id:
            raise Forbidden("Only the group admin can update or delete a group")
        return group

    async def _checked_members(self, member_ids: list[str], admin_id: str) -> list[str]:
        for uid in member_ids:
            if not is_valid_id(uid):
                raise ValidationError("Invalid user ID")

        members = list(dict.fromkeys([*member_ids, admin_id]))
        known = await self._storage.get_users(members)
        missing = [uid for uid in members if uid not in known]
        if missing:
            raise NotFound("User not found")
        return members

    async def _profiles(self, user_ids: list[str]) -> dict[str, PublicProfile]:
        users = await self._storage.get_users(user_ids)
        return {uid: user.public_profile() for uid, user in users.items()}

    async def _attach_last_message(self, conversation: Conversation) -> None:
        if conversation.last_message_id:
            conversation.last_message = await self._storage.get_message(
                conversation.last_message_id
            )

    async def _populate_group(self, group: GroupChat) -> GroupChat:
        profiles = await self._profiles(group.member_ids)
        group.members = [profiles[uid] for uid in group.member_ids if uid in profiles]
        group.admin = profiles.get(group.admin_id)
        await self._attach_last_message(group)
        return group
