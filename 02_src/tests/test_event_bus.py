"""Tests for EventBus."""

from datetime import datetime, timezone

from animehub.models import BusMessage, Topic


class TestEventBusSubscribe:
    """Tests for EventBus subscription."""

    async def test_subscribe_multiple_handlers(self, event_bus):
        async def handler1(msg: BusMessage):
            pass

        async def handler2(msg: BusMessage):
            pass

        event_bus.subscribe(Topic.MESSAGE_SENT, handler1)
        event_bus.subscribe(Topic.MESSAGE_SENT, handler2)

        assert len(event_bus._subscribers[Topic.MESSAGE_SENT]) == 2

    async def test_unsubscribe(self, event_bus):
        calls = []

        async def handler(msg: BusMessage):
            calls.append(msg)

        event_bus.subscribe(Topic.MESSAGE_READ, handler)
        event_bus.unsubscribe(Topic.MESSAGE_READ, handler)
        event_bus.unsubscribe(Topic.MESSAGE_READ, handler)

        await event_bus.emit(Topic.MESSAGE_READ, {}, source="test")
        assert calls == []


class TestEventBusPublish:
    """Tests for EventBus publishing."""

    async def test_publish_reaches_topic_subscribers_only(self, event_bus):
        sent, deleted = [], []

        async def on_sent(msg: BusMessage):
            sent.append(msg)

        async def on_deleted(msg: BusMessage):
            deleted.append(msg)

        event_bus.subscribe(Topic.MESSAGE_SENT, on_sent)
        event_bus.subscribe(Topic.MESSAGE_DELETED, on_deleted)

        msg = BusMessage(
            id="bus1",
            topic=Topic.MESSAGE_SENT,
            payload={"test": "data"},
            source="test",
            timestamp=datetime.now(timezone.utc),
        )
        await event_bus.publish(msg)

        assert sent == [msg]
        assert deleted == []

    async def test_publish_assigns_missing_id(self, event_bus):
        msg = BusMessage(
            id="",
            topic=Topic.MESSAGE_SENT,
            payload={},
            source="test",
            timestamp=datetime.now(timezone.utc),
        )
        await event_bus.publish(msg)
        assert msg.id

    async def test_failing_handler_does_not_block_others(self, event_bus):
        calls = []

        async def broken(msg: BusMessage):
            raise RuntimeError("boom")

        async def working(msg: BusMessage):
            calls.append(msg.payload)

        event_bus.subscribe(Topic.MESSAGE_SENT, broken)
        event_bus.subscribe(Topic.MESSAGE_SENT, working)

        await event_bus.emit(Topic.MESSAGE_SENT, {"n": 1}, source="test")
        assert calls == [{"n": 1}]

    async def test_emit_returns_message(self, event_bus):
        msg = await event_bus.emit(Topic.MESSAGE_DELETED, {"message_id": "m1"}, source="svc")
        assert msg.topic == Topic.MESSAGE_DELETED
        assert msg.source == "svc"
        assert msg.timestamp.tzinfo is not None
