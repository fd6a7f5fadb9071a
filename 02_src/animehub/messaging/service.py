"""Message persistence, history and read receipts."""

from datetime import datetime, timezone
from typing import Protocol

from ..conversations import IConversationResolver
from ..errors import Forbidden, NotFound, ValidationError
from ..event_bus import IEventBus
from ..logging_config import get_logger
from ..models import (
    ConversationRef,
    DirectMessage,
    IncomingFile,
    Message,
    MessagePage,
    MessageStatus,
    Topic,
    UploadCategory,
    is_valid_id,
    new_id,
)
from ..storage import IStorage
from ..uploads import FileStore

logger = get_logger(__name__)

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100
MAX_CONTENT_LENGTH = 2000

SOURCE = "message_service"


def clamp_page(page: int, page_size: int) -> tuple[int, int]:
    """Clamp page to >= 1 and page_size to [1, MAX_PAGE_SIZE]."""
    return max(1, page), min(max(1, page_size), MAX_PAGE_SIZE)


def _owned_upload(url: str, owner_id: str) -> bool:
    """True for `/uploads/general/{owner_id}_...` with no path tricks."""
    prefix = UploadCategory.GENERAL.url_prefix
    if not url.startswith(prefix):
        return False
    filename = url[len(prefix):]
    if not filename or "/" in filename or "\\" in filename or ".." in filename:
        return False
    return filename.startswith(f"{owner_id}_")


class IMessageService(Protocol):
    """Sending, listing, reading and deleting messages."""

    async def send(
        self,
        ref: ConversationRef,
        sender_id: str,
        content: str | None = None,
        attachment: IncomingFile | None = None,
        attachment_url: str | None = None,
    ) -> Message:
        """Validate, persist and announce a new message."""
        ...

    async def list(
        self,
        ref: ConversationRef,
        requester_id: str,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> MessagePage:
        """One page of history, oldest first within the page."""
        ...

    async def mark_read(self, message_id: str, user_id: str) -> Message:
        """Add a reader to the read-set."""
        ...

    async def delete(self, message_id: str, requester_id: str) -> None:
        """Delete a message owned by the requester."""
        ...


class MessageService:
    """Message service backed by IStorage, announcing changes on the EventBus."""

    def __init__(
        self,
        storage: IStorage,
        resolver: IConversationResolver,
        event_bus: IEventBus,
        file_store: FileStore,
    ):
        self._storage = storage
        self._resolver = resolver
        self._event_bus = event_bus
        self._file_store = file_store

    async def send(
        self,
        ref: ConversationRef,
        sender_id: str,
        content: str | None = None,
        attachment: IncomingFile | None = None,
        attachment_url: str | None = None,
    ) -> Message:
        content = content if content and content.strip() else ""
        if not content and attachment is None and not attachment_url:
            raise ValidationError("Message content or attachment is required")
        if len(content) > MAX_CONTENT_LENGTH:
            raise ValidationError(
                f"Message content exceeds {MAX_CONTENT_LENGTH} characters"
            )
        if attachment is not None and attachment_url:
            raise ValidationError("Send either an attachment file or an attachment URL")
        if attachment_url and not _owned_upload(attachment_url, sender_id):
            raise ValidationError("Invalid attachment URL")

        conversation = await self._resolver.require_participant(ref, sender_id)

        stored_url = None
        if attachment is not None:
            self._file_store.validate(UploadCategory.GENERAL, attachment)
            stored_url = self._file_store.save(UploadCategory.GENERAL, sender_id, attachment).url
            attachment_url = stored_url

        now = datetime.now(timezone.utc)
        message = Message(
            id=new_id(),
            sender_id=sender_id,
            chat=ref,
            content=content,
            attachment_url=attachment_url,
            status=MessageStatus.SENT,
            read_by=[sender_id],
            created_at=now,
            updated_at=now,
        )

        try:
            await self._storage.insert_message(message)
        except Exception:
            if stored_url:
                self._file_store.delete_url(stored_url)
            raise

        await self._storage.set_last_message(ref, message.id, now)

        sender = await self._storage.get_user(sender_id)
        message.sender = sender.public_profile() if sender else None

        logger.info(
            "Message sent",
            extra={"context": {"message_id": message.id, "chat": ref.id, "kind": ref.kind.value}},
        )

        receiver_id = None
        if isinstance(conversation, DirectMessage):
            receiver_id = conversation.other_member_id(sender_id)
        await self._event_bus.emit(
            Topic.MESSAGE_SENT,
            {"message": message, "receiver_id": receiver_id},
            source=SOURCE,
        )
        return message

    async def list(
        self,
        ref: ConversationRef,
        requester_id: str,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> MessagePage:
        page, page_size = clamp_page(page, page_size)
        await self._resolver.require_participant(ref, requester_id)

        # Newest first from storage, then oldest first within the page
        messages = await self._storage.list_messages(
            ref, offset=(page - 1) * page_size, limit=page_size
        )
        messages.reverse()

        senders = await self._storage.get_users([m.sender_id for m in messages])
        for message in messages:
            sender = senders.get(message.sender_id)
            message.sender = sender.public_profile() if sender else None

        return MessagePage(
            messages=messages,
            current_page=page,
            has_more=len(messages) == page_size,
        )

    async def mark_read(self, message_id: str, user_id: str) -> Message:
        message = await self._get_message(message_id)

        await self._storage.add_reader(message.id, user_id, datetime.now(timezone.utc))
        updated = await self._storage.get_message(message.id)
        if updated is None:
            raise NotFound("Message not found")

        await self._event_bus.emit(
            Topic.MESSAGE_READ,
            {"message": updated, "reader_id": user_id},
            source=SOURCE,
        )
        return updated

    async def delete(self, message_id: str, requester_id: str) -> None:
        message = await self._get_message(message_id)
        if message.sender_id != requester_id:
            logger.info(
                "Rejected delete by non-sender",
                extra={"context": {"message_id": message.id, "user_id": requester_id}},
            )
            raise Forbidden("Not authorized to delete this message")

        if message.attachment_url and _owned_upload(message.attachment_url, message.sender_id):
            self._file_store.delete_url(message.attachment_url)

        await self._storage.delete_message(message.id)

        conversation = await self._resolver.get_conversation(message.chat)
        if conversation is not None and conversation.last_message_id == message.id:
            latest = await self._storage.latest_message(message.chat)
            await self._storage.set_last_message(
                message.chat, latest.id if latest else None
            )

        logger.info("Message deleted", extra={"context": {"message_id": message.id}})
        await self._event_bus.emit(
            Topic.MESSAGE_DELETED,
            {"message_id": message.id, "chat": message.chat, "sender_id": message.sender_id},
            source=SOURCE,
        )

    async def _get_message(self, message_id: str) -> Message:
        message = await self._storage.get_message(message_id) if is_valid_id(message_id) else None
        if message is None:
            raise NotFound("Message not found")
        return message
