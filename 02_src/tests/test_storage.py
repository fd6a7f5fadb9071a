"""Tests for Storage."""

from datetime import datetime, timedelta, timezone

import aiosqlite
import pytest

from animehub.models import (
    ConversationKind,
    ConversationRef,
    DirectMessage,
    GroupChat,
    Message,
    MessageStatus,
    Review,
    User,
    new_id,
)

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_user(username: str) -> User:
    return User(
        id=new_id(),
        username=username,
        email=f"{username}@example.com",
        password_hash="hash",
        created_at=NOW,
        updated_at=NOW,
    )


def make_message(sender_id: str, ref: ConversationRef, content: str, at: datetime) -> Message:
    return Message(
        id=new_id(),
        sender_id=sender_id,
        chat=ref,
        content=content,
        read_by=[sender_id],
        created_at=at,
        updated_at=at,
    )


@pytest.fixture
async def pair(storage):
    a, b = make_user("alice"), make_user("bob")
    await storage.insert_user(a)
    await storage.insert_user(b)
    return a, b


class TestStorageInit:
    """Tests for Storage initialization."""

    async def test_init_creates_tables(self, storage):
        async with storage._conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table'"
        ) as cursor:
            tables = {row[0] for row in await cursor.fetchall()}
        assert {
            "users",
            "direct_messages",
            "group_chats",
            "group_chat_members",
            "messages",
            "message_reads",
            "reviews",
        } <= tables

    async def test_use_before_init_raises(self):
        from animehub.storage import Storage

        st = Storage(":memory:")
        with pytest.raises(RuntimeError, match="not initialized"):
            await st.get_user(new_id())


class TestStorageUsers:
    """Tests for User storage."""

    async def test_insert_and_get(self, storage):
        user = make_user("alice")
        await storage.insert_user(user)

        stored = await storage.get_user(user.id)
        assert stored.username == "alice"
        assert stored.created_at == NOW

    async def test_unique_username(self, storage):
        await storage.insert_user(make_user("alice"))
        duplicate = make_user("alice")
        duplicate.email = "other@example.com"
        with pytest.raises(aiosqlite.IntegrityError):
            await storage.insert_user(duplicate)

    async def test_get_by_email(self, storage, pair):
        alice, _ = pair
        assert (await storage.get_user_by_email("alice@example.com")).id == alice.id
        assert await storage.get_user_by_email("nobody@example.com") is None

    async def test_get_users_skips_unknown(self, storage, pair):
        alice, bob = pair
        users = await storage.get_users([alice.id, bob.id, new_id()])
        assert set(users) == {alice.id, bob.id}

    async def test_search_excludes_requester(self, storage, pair):
        alice, bob = pair
        found = await storage.search_users("example", exclude_id=alice.id)
        assert [u.id for u in found] == [bob.id]

    async def test_search_escapes_wildcards(self, storage, pair):
        assert await storage.search_users("%") == []

    async def test_update_user(self, storage, pair):
        alice, _ = pair
        alice.profile_picture = "a.png"
        await storage.update_user(alice)
        assert (await storage.get_user(alice.id)).profile_picture == "a.png"


class TestStorageDirects:
    """Tests for direct conversation storage."""

    async def test_get_or_insert_is_idempotent(self, storage, pair):
        alice, bob = pair
        first = await storage.get_or_insert_direct(
            DirectMessage(id=new_id(), member_ids=[alice.id, bob.id], created_at=NOW, updated_at=NOW)
        )
        second = await storage.get_or_insert_direct(
            DirectMessage(id=new_id(), member_ids=[bob.id, alice.id], created_at=NOW, updated_at=NOW)
        )
        assert first.id == second.id

    async def test_find_direct_any_order(self, storage, pair):
        alice, bob = pair
        created = await storage.get_or_insert_direct(
            DirectMessage(id=new_id(), member_ids=[alice.id, bob.id], created_at=NOW, updated_at=NOW)
        )
        assert (await storage.find_direct(bob.id, alice.id)).id == created.id

    async def test_list_orders_by_recency(self, storage, pair):
        alice, bob = pair
        carol = make_user("carol")
        await storage.insert_user(carol)

        older = await storage.get_or_insert_direct(
            DirectMessage(id=new_id(), member_ids=[alice.id, bob.id], created_at=NOW, updated_at=NOW)
        )
        newer = await storage.get_or_insert_direct(
            DirectMessage(
                id=new_id(),
                member_ids=[alice.id, carol.id],
                created_at=NOW,
                updated_at=NOW + timedelta(minutes=1),
            )
        )
        listed = await storage.list_directs_for_user(alice.id)
        assert [c.id for c in listed] == [newer.id, older.id]

        await storage.set_last_message(older.ref, None, NOW + timedelta(minutes=5))
        listed = await storage.list_directs_for_user(alice.id)
        assert [c.id for c in listed] == [older.id, newer.id]


class TestStorageGroups:
    """Tests for group chat storage."""

    async def test_members_keep_order(self, storage, pair):
        alice, bob = pair
        group = GroupChat(
            id=new_id(),
            name="Club",
            admin_id=alice.id,
            member_ids=[bob.id, alice.id],
            created_at=NOW,
            updated_at=NOW,
        )
        await storage.insert_group(group)

        stored = await storage.get_group(group.id)
        assert stored.member_ids == [bob.id, alice.id]
        assert [g.id for g in await storage.list_groups_for_user(bob.id)] == [group.id]

    async def test_delete_removes_messages(self, storage, pair):
        alice, bob = pair
        group = GroupChat(
            id=new_id(),
            name="Club",
            admin_id=alice.id,
            member_ids=[alice.id, bob.id],
            created_at=NOW,
            updated_at=NOW,
        )
        await storage.insert_group(group)
        message = make_message(alice.id, group.ref, "hi", NOW)
        await storage.insert_message(message)

        assert await storage.delete_group(group.id)
        assert await storage.get_group(group.id) is None
        assert await storage.get_message(message.id) is None


class TestStorageMessages:
    """Tests for message storage."""

    async def test_list_newest_first_with_paging(self, storage, pair):
        alice, bob = pair
        ref = ConversationRef(ConversationKind.DIRECT, new_id())
        ids = []
        for i in range(5):
            message = make_message(alice.id, ref, f"m{i}", NOW + timedelta(seconds=i))
            await storage.insert_message(message)
            ids.append(message.id)

        first = await storage.list_messages(ref, offset=0, limit=2)
        assert [m.id for m in first] == [ids[4], ids[3]]
        third = await storage.list_messages(ref, offset=4, limit=2)
        assert [m.id for m in third] == [ids[0]]

    async def test_add_reader_is_idempotent(self, storage, pair):
        alice, bob = pair
        ref = ConversationRef(ConversationKind.DIRECT, new_id())
        message = make_message(alice.id, ref, "hi", NOW)
        await storage.insert_message(message)

        await storage.add_reader(message.id, bob.id, NOW)
        await storage.add_reader(message.id, bob.id, NOW)

        stored = await storage.get_message(message.id)
        assert stored.read_by == [alice.id, bob.id]
        assert stored.status == MessageStatus.READ

    async def test_delete_message_drops_reads(self, storage, pair):
        alice, _ = pair
        ref = ConversationRef(ConversationKind.DIRECT, new_id())
        message = make_message(alice.id, ref, "hi", NOW)
        await storage.insert_message(message)

        assert await storage.delete_message(message.id)
        assert not await storage.delete_message(message.id)
        async with storage._conn.execute(
            "SELECT COUNT(*) FROM message_reads WHERE message_id = ?", (message.id,)
        ) as cursor:
            assert (await cursor.fetchone())[0] == 0

    async def test_latest_message(self, storage, pair):
        alice, _ = pair
        ref = ConversationRef(ConversationKind.DIRECT, new_id())
        assert await storage.latest_message(ref) is None

        await storage.insert_message(make_message(alice.id, ref, "old", NOW))
        newest = make_message(alice.id, ref, "new", NOW + timedelta(seconds=1))
        await storage.insert_message(newest)
        assert (await storage.latest_message(ref)).id == newest.id


class TestStorageReviews:
    """Tests for review storage."""

    async def test_rating_constraint(self, storage, pair):
        alice, _ = pair
        review = Review(
            id=new_id(),
            user_id=alice.id,
            anime_title="Naruto",
            review_text="ok",
            rating=6,
            created_at=NOW,
            updated_at=NOW,
        )
        with pytest.raises(aiosqlite.IntegrityError):
            await storage.insert_review(review)

    async def test_list_filters_by_user(self, storage, pair):
        alice, bob = pair
        for user in (alice, bob):
            await storage.insert_review(
                Review(
                    id=new_id(),
                    user_id=user.id,
                    anime_title="Bleach",
                    review_text="fine",
                    rating=3,
                    created_at=NOW,
                    updated_at=NOW,
                )
            )
        assert len(await storage.list_reviews()) == 2
        assert [r.user_id for r in await storage.list_reviews(user_id=bob.id)] == [bob.id]


class TestStorageClear:
    """Tests for clear()."""

    async def test_clear_removes_everything(self, storage, pair):
        alice, _ = pair
        await storage.clear()
        assert await storage.get_user(alice.id) is None
