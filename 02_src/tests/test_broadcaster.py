"""Tests for the realtime Broadcaster."""

from unittest.mock import AsyncMock, Mock

import pytest

from animehub.errors import Forbidden, NotFound
from animehub.models import ConversationKind, ConversationRef, new_id
from animehub.realtime import Broadcaster, ConnectionState
from animehub.schemas import SendMessageEvent


class FakeConnection:
    """Collects frames instead of writing to a socket."""

    def __init__(self, user_id: str):
        self.id = new_id()
        self.user_id = user_id
        self.sent: list[dict] = []

    async def send_json(self, data: dict) -> None:
        self.sent.append(data)

    def events(self, name: str) -> list[dict]:
        return [f["data"] for f in self.sent if f["event"] == name]


class BrokenConnection(FakeConnection):
    async def send_json(self, data: dict) -> None:
        raise ConnectionResetError("gone")


@pytest.fixture
async def broadcaster(resolver, message_service, event_bus):
    b = Broadcaster(resolver=resolver, messages=message_service, event_bus=event_bus)
    await b.start()
    yield b
    await b.stop()


def connect(broadcaster, user, cls=FakeConnection):
    connection = cls(user.id)
    broadcaster.connect(connection)
    return connection


class TestConnectionLifecycle:
    """Tests for the per-connection state machine."""

    async def test_states(self, broadcaster, direct, alice):
        conn = connect(broadcaster, alice)
        assert broadcaster.state(conn.id) == ConnectionState.CONNECTED

        await broadcaster.join(conn.id, direct.id)
        assert broadcaster.state(conn.id) == ConnectionState.ROOM_MEMBER
        assert broadcaster.rooms_of(conn.id) == {direct.id}

        broadcaster.disconnect(conn.id)
        assert broadcaster.state(conn.id) == ConnectionState.CLOSED
        assert broadcaster.members_of(direct.id) == set()

    async def test_leave(self, broadcaster, direct, alice):
        conn = connect(broadcaster, alice)
        await broadcaster.join(conn.id, direct.id)

        assert broadcaster.leave(conn.id, direct.id)
        assert not broadcaster.leave(conn.id, direct.id)
        assert broadcaster.state(conn.id) == ConnectionState.CONNECTED

    async def test_join_multiple_rooms(self, broadcaster, resolver, alice, bob, carol):
        one = await resolver.get_or_create_direct(alice.id, bob.id)
        two = await resolver.get_or_create_direct(alice.id, carol.id)
        conn = connect(broadcaster, alice)

        await broadcaster.join(conn.id, one.id)
        await broadcaster.join(conn.id, two.id)

        assert broadcaster.rooms_of(conn.id) == {one.id, two.id}

    async def test_join_requires_membership(self, broadcaster, direct, carol):
        conn = connect(broadcaster, carol)
        with pytest.raises(Forbidden):
            await broadcaster.join(conn.id, direct.id)
        assert broadcaster.members_of(direct.id) == set()

    async def test_join_unknown_conversation(self, broadcaster, alice):
        conn = connect(broadcaster, alice)
        with pytest.raises(NotFound):
            await broadcaster.join(conn.id, new_id())


class TestFanOut:
    """Tests for delivering stored events to rooms."""

    async def test_sent_message_reaches_room(self, broadcaster, message_service, direct, alice, bob, carol):
        a1, a2 = connect(broadcaster, alice), connect(broadcaster, alice)
        b = connect(broadcaster, bob)
        outsider = connect(broadcaster, carol)
        for conn in (a1, a2, b):
            await broadcaster.join(conn.id, direct.id)

        message = await message_service.send(direct.ref, alice.id, content="hello")

        for conn in (a1, a2, b):
            [data] = conn.events("receiveMessage")
            assert data["id"] == message.id
            assert data["content"] == "hello"
            assert data["senderName"] == "alice"
            assert data["receiverId"] == bob.id
            assert data["timestamp"]
        assert outsider.sent == []

    async def test_socket_send_is_persisted(self, broadcaster, message_service, direct, alice, bob):
        a = connect(broadcaster, alice)
        b = connect(broadcaster, bob)
        await broadcaster.join(b.id, direct.id)

        stored = await broadcaster.handle_send(
            a.id, SendMessageEvent(conversation_id=direct.id, content="over the wire")
        )

        page = await message_service.list(direct.ref, bob.id)
        assert [m.id for m in page.messages] == [stored.id]
        assert b.events("receiveMessage")[0]["id"] == stored.id

    async def test_read_and_delete_events(self, broadcaster, message_service, direct, alice, bob):
        b = connect(broadcaster, bob)
        await broadcaster.join(b.id, direct.id)
        message = await message_service.send(direct.ref, alice.id, content="hi")

        await message_service.mark_read(message.id, bob.id)
        await message_service.delete(message.id, alice.id)

        [read] = b.events("messageRead")
        assert read["messageId"] == message.id
        assert read["readerId"] == bob.id
        assert read["status"] == "read"
        assert b.events("messageDeleted") == [{"messageId": message.id, "chatId": direct.id}]

    async def test_broken_connection_does_not_block_room(self, broadcaster, direct, alice, bob):
        broken = connect(broadcaster, alice, BrokenConnection)
        healthy = connect(broadcaster, bob)
        await broadcaster.join(broken.id, direct.id)
        await broadcaster.join(healthy.id, direct.id)

        delivered = await broadcaster.broadcast(direct.ref, "ping", {})

        assert delivered == 1
        assert healthy.events("ping") == [{}]

    async def test_frames_sent_once_per_connection(self, broadcaster, message_service, direct, alice):
        """Test that a connection in the room gets exactly one receiveMessage."""
        conn = Mock(id=new_id(), user_id=alice.id)
        conn.send_json = AsyncMock()
        broadcaster.connect(conn)
        await broadcaster.join(conn.id, direct.id)

        await message_service.send(direct.ref, alice.id, content="once")

        conn.send_json.assert_awaited_once()
        frame = conn.send_json.await_args.args[0]
        assert frame["event"] == "receiveMessage"
        assert frame["data"]["chatId"] == direct.id
        assert frame["data"]["senderId"] == alice.id

    async def test_broadcast_empty_room(self, broadcaster):
        empty = ConversationRef(ConversationKind.DIRECT, new_id())
        assert await broadcaster.broadcast(empty, "ping", {}) == 0

    async def test_member_removed_from_group_stops_receiving(
        self, broadcaster, resolver, message_service, alice, bob, carol
    ):
        group = await resolver.create_group(alice.id, "Club", [bob.id, carol.id])
        b, c = connect(broadcaster, bob), connect(broadcaster, carol)
        await broadcaster.join(b.id, group.id)
        await broadcaster.join(c.id, group.id)

        await resolver.update_group(group.id, alice.id, member_ids=[bob.id])
        await message_service.send(group.ref, alice.id, content="after removal")

        assert [m["content"] for m in b.events("receiveMessage")] == ["after removal"]
        assert c.events("receiveMessage") == []
        assert broadcaster.rooms_of(c.id) == set()
        assert broadcaster.members_of(group.id) == {b.id}

    async def test_deleted_group_empties_room(self, broadcaster, resolver, alice, bob):
        group = await resolver.create_group(alice.id, "Club", [bob.id])
        b = connect(broadcaster, bob)
        await broadcaster.join(b.id, group.id)

        await resolver.delete_group(group.id, alice.id)

        assert await broadcaster.broadcast(group.ref, "ping", {}) == 0
        assert b.sent == []
        assert broadcaster.state(b.id) == ConnectionState.CONNECTED
        assert broadcaster.members_of(group.id) == set()

    async def test_stop_unsubscribes(self, broadcaster, message_service, direct, alice):
        conn = connect(broadcaster, alice)
        await broadcaster.join(conn.id, direct.id)
        await broadcaster.stop()

        await message_service.send(direct.ref, alice.id, content="after stop")
        assert conn.sent == []


class TestDispatch:
    """Tests for client frame handling."""

    async def test_join_ack(self, broadcaster, direct, alice):
        conn = connect(broadcaster, alice)
        await broadcaster.dispatch(conn.id, {"event": "joinChat", "data": direct.id})

        assert conn.sent == [{"event": "joinedChat", "data": {"conversationId": direct.id}}]

    async def test_join_with_object_payload(self, broadcaster, direct, alice):
        conn = connect(broadcaster, alice)
        await broadcaster.dispatch(
            conn.id, {"event": "joinChat", "data": {"conversationId": direct.id}}
        )
        assert broadcaster.rooms_of(conn.id) == {direct.id}

    async def test_join_forbidden_sends_error(self, broadcaster, direct, carol):
        conn = connect(broadcaster, carol)
        await broadcaster.dispatch(conn.id, {"event": "joinChat", "data": direct.id})

        [error] = conn.events("error")
        assert error["error"] == "forbidden"

    async def test_leave_ack(self, broadcaster, direct, alice):
        conn = connect(broadcaster, alice)
        await broadcaster.dispatch(conn.id, {"event": "joinChat", "data": direct.id})
        await broadcaster.dispatch(conn.id, {"event": "leaveChat", "data": direct.id})

        assert conn.events("leftChat") == [{"conversationId": direct.id}]
        assert broadcaster.rooms_of(conn.id) == set()

    async def test_send_message_frame(self, broadcaster, direct, alice):
        conn = connect(broadcaster, alice)
        await broadcaster.dispatch(conn.id, {"event": "joinChat", "data": direct.id})
        await broadcaster.dispatch(
            conn.id,
            {"event": "sendMessage", "data": {"conversationId": direct.id, "content": "yo"}},
        )
        assert conn.events("receiveMessage")[0]["content"] == "yo"

    async def test_send_message_non_member(self, broadcaster, direct, carol):
        conn = connect(broadcaster, carol)
        await broadcaster.dispatch(
            conn.id,
            {"event": "sendMessage", "data": {"conversationId": direct.id, "content": "hi"}},
        )
        assert conn.events("error")[0]["error"] == "forbidden"

    @pytest.mark.parametrize(
        "raw",
        [
            {"event": "dance"},
            {"data": "no event"},
            ["not", "an", "object"],
            {"event": "sendMessage", "data": {"content": "missing conversation"}},
            {"event": "joinChat", "data": None},
        ],
    )
    async def test_bad_frames_answer_with_validation_error(self, broadcaster, alice, raw):
        conn = connect(broadcaster, alice)
        await broadcaster.dispatch(conn.id, raw)

        [error] = conn.events("error")
        assert error["error"] == "validation_error"

    async def test_unexpected_failure_answers_with_internal_error(
        self, resolver, event_bus, direct, alice
    ):
        messages = Mock()
        messages.send = AsyncMock(side_effect=RuntimeError("disk full"))
        b = Broadcaster(resolver=resolver, messages=messages, event_bus=event_bus)
        conn = connect(b, alice)

        await b.dispatch(
            conn.id,
            {"event": "sendMessage", "data": {"conversationId": direct.id, "content": "hi"}},
        )

        assert conn.events("error") == [
            {"error": "internal_error", "message": "Internal server error"}
        ]
        assert b.state(conn.id) == ConnectionState.CONNECTED
