"""Room-based fan-out of chat events to live connections."""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Protocol

import pydantic

from ..conversations import IConversationResolver
from ..errors import AnimeHubError, InternalError, Unauthenticated, ValidationError
from ..event_bus import IEventBus
from ..logging_config import get_logger
from ..messaging import IMessageService
from ..models import BusMessage, ConversationRef, Message, Topic
from ..schemas import SendMessageEvent, SocketFrame, message_out

logger = get_logger(__name__)


class ConnectionState(str, Enum):
    """Lifecycle of a realtime connection."""

    CONNECTED = "connected"
    ROOM_MEMBER = "room_member"
    CLOSED = "closed"


class IConnection(Protocol):
    """A live, authenticated client connection."""

    id: str
    user_id: str

    async def send_json(self, data: dict) -> None:
        """Push one frame to the client."""
        ...


@dataclass
class _Session:
    connection: IConnection
    rooms: set[str] = field(default_factory=set)

    @property
    def state(self) -> ConnectionState:
        return ConnectionState.ROOM_MEMBER if self.rooms else ConnectionState.CONNECTED


def frame(event: str, data: Any = None) -> dict:
    return {"event": event, "data": data}


class Broadcaster:
    """Maps conversations to rooms and pushes stored events to their members."""

    def __init__(
        self,
        resolver: IConversationResolver,
        messages: IMessageService,
        event_bus: IEventBus,
    ):
        self._resolver = resolver
        self._messages = messages
        self._event_bus = event_bus

        self._sessions: dict[str, _Session] = {}
        self._rooms: dict[str, set[str]] = {}
        self._handlers = {
            Topic.MESSAGE_SENT: self._on_message_sent,
            Topic.MESSAGE_READ: self._on_message_read,
            Topic.MESSAGE_DELETED: self._on_message_deleted,
        }

    async def start(self) -> None:
        """Subscribe to message events."""
        for topic, handler in self._handlers.items():
            self._event_bus.subscribe(topic, handler)

    async def stop(self) -> None:
        """Unsubscribe and drop all connections."""
        for topic, handler in self._handlers.items():
            self._event_bus.unsubscribe(topic, handler)
        self._sessions.clear()
        self._rooms.clear()

    # Connection lifecycle
    def connect(self, connection: IConnection) -> None:
        self._sessions[connection.id] = _Session(connection)
        logger.info(
            "Realtime connection opened",
            extra={"context": {"connection_id": connection.id, "user_id": connection.user_id}},
        )

    def state(self, connection_id: str) -> ConnectionState:
        session = self._sessions.get(connection_id)
        return session.state if session else ConnectionState.CLOSED

    def rooms_of(self, connection_id: str) -> set[str]:
        session = self._sessions.get(connection_id)
        return set(session.rooms) if session else set()

    def members_of(self, room: str) -> set[str]:
        return set(self._rooms.get(room, ()))

    async def join(self, connection_id: str, conversation_id: str) -> ConversationRef:
        """Admit a connection to a conversation's room after a membership check."""
        session = self._session(connection_id)
        ref = await self._resolver.resolve_ref(conversation_id)
        await self._resolver.require_participant(ref, session.connection.user_id)

        session.rooms.add(ref.id)
        self._rooms.setdefault(ref.id, set()).add(connection_id)
        logger.info(
            "Joined room",
            extra={"context": {"connection_id": connection_id, "room": ref.id}},
        )
        return ref

    def leave(self, connection_id: str, conversation_id: str) -> bool:
        session = self._sessions.get(connection_id)
        if session is None or conversation_id not in session.rooms:
            return False

        session.rooms.discard(conversation_id)
        self._discard_member(conversation_id, connection_id)
        return True

    def disconnect(self, connection_id: str) -> None:
        session = self._sessions.pop(connection_id, None)
        if session is None:
            return

        for room in session.rooms:
            self._discard_member(room, connection_id)
        logger.info(
            "Realtime connection closed",
            extra={"context": {"connection_id": connection_id, "rooms": len(session.rooms)}},
        )

    # Client events
    async def handle_send(self, connection_id: str, payload: SendMessageEvent) -> Message:
        """Persist a message sent over the socket; the room is notified from the bus."""
        session = self._session(connection_id)
        ref = await self._resolver.resolve_ref(payload.conversation_id)
        return await self._messages.send(
            ref,
            session.connection.user_id,
            content=payload.content,
            attachment_url=payload.attachment,
        )

    async def dispatch(self, connection_id: str, raw: Any) -> None:
        """Handle one client frame, answering with an ack or an error frame."""
        session = self._session(connection_id)
        try:
            incoming = SocketFrame.model_validate(raw)
            if incoming.event == "joinChat":
                ref = await self.join(connection_id, _conversation_id(incoming.data))
                await session.connection.send_json(frame("joinedChat", {"conversationId": ref.id}))
            elif incoming.event == "leaveChat":
                conversation_id = _conversation_id(incoming.data)
                self.leave(connection_id, conversation_id)
                await session.connection.send_json(frame("leftChat", {"conversationId": conversation_id}))
            elif incoming.event == "sendMessage":
                await self.handle_send(connection_id, SendMessageEvent.model_validate(incoming.data))
            else:
                raise ValidationError(f"Unknown event: {incoming.event}")
        except pydantic.ValidationError as e:
            await session.connection.send_json(
                frame("error", ValidationError(_first_error(e)).to_dict())
            )
        except AnimeHubError as e:
            await session.connection.send_json(frame("error", e.to_dict()))
        except Exception:
            logger.exception(
                "Realtime event failed",
                extra={"context": {"connection_id": connection_id}},
            )
            await session.connection.send_json(
                frame("error", InternalError("Internal server error").to_dict())
            )

    # Fan-out
    async def broadcast(self, ref: ConversationRef, event: str, data: Any) -> int:
        """Send a frame to every current participant in a room. Returns the delivered count.

        Connections whose user is no longer a participant (removed from a group,
        or the group deleted) are evicted from the room instead of receiving it.
        """
        connection_ids = [cid for cid in self._rooms.get(ref.id, ()) if cid in self._sessions]
        if not connection_ids:
            return 0

        conversation = await self._resolver.get_conversation(ref)
        targets = []
        for cid in connection_ids:
            connection = self._sessions[cid].connection
            if conversation is not None and conversation.has_member(connection.user_id):
                targets.append(connection)
            else:
                self._evict(cid, ref.id)
        if not targets:
            return 0

        payload = frame(event, data)
        results = await asyncio.gather(
            *[target.send_json(payload) for target in targets],
            return_exceptions=True,
        )

        delivered = 0
        for target, result in zip(targets, results):
            if isinstance(result, Exception):
                logger.warning(
                    "Dropped %s for connection %s: %s", event, target.id, result
                )
            else:
                delivered += 1
        return delivered

    async def _on_message_sent(self, bus_message: BusMessage) -> None:
        message: Message = bus_message.payload["message"]
        data = message_out(message).model_dump(mode="json", by_alias=True)
        data.update(
            {
                "senderName": message.sender.username if message.sender else None,
                "profilePicture": message.sender.profile_picture_url if message.sender else None,
                "receiverId": bus_message.payload.get("receiver_id"),
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
        )
        await self.broadcast(message.chat, "receiveMessage", data)

    async def _on_message_read(self, bus_message: BusMessage) -> None:
        message: Message = bus_message.payload["message"]
        await self.broadcast(
            message.chat,
            "messageRead",
            {
                "messageId": message.id,
                "chatId": message.chat.id,
                "readerId": bus_message.payload.get("reader_id"),
                "readBy": list(message.read_by),
                "status": message.status.value,
            },
        )

    async def _on_message_deleted(self, bus_message: BusMessage) -> None:
        chat: ConversationRef = bus_message.payload["chat"]
        await self.broadcast(
            chat,
            "messageDeleted",
            {"messageId": bus_message.payload["message_id"], "chatId": chat.id},
        )

    # Helpers
    def _session(self, connection_id: str) -> _Session:
        session = self._sessions.get(connection_id)
        if session is None:
            raise Unauthenticated("Connection is closed")
        return session

    def _evict(self, connection_id: str, room: str) -> None:
        session = self._sessions.get(connection_id)
        if session is not None:
            session.rooms.discard(room)
        self._discard_member(room, connection_id)
        logger.info(
            "Evicted non-member from room",
            extra={"context": {"connection_id": connection_id, "room": room}},
        )

    def _discard_member(self, room: str, connection_id: str) -> None:
        members = self._rooms.get(room)
        if members is None:
            return
        members.discard(connection_id)
        if not members:
            del self._rooms[room]


def _conversation_id(data: Any) -> str:
    if isinstance(data, dict):
        data = data.get("conversationId") or data.get("chatId")
    if not isinstance(data, str) or not data:
        raise ValidationError("conversationId is required")
    return data


def _first_error(error: pydantic.ValidationError) -> str:
    details = error.errors()
    if not details:
        return "Invalid payload"
    first = details[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
