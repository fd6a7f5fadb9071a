"""SQLite-backed document store."""

from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

import aiosqlite

from ..config import resolve_db_path
from ..models import (
    ConversationKind,
    ConversationRef,
    DirectMessage,
    GroupChat,
    Message,
    MessageStatus,
    Review,
    User,
)

_CONVERSATION_TABLES = {
    ConversationKind.DIRECT: "direct_messages",
    ConversationKind.GROUP: "group_chats",
}


def _ts(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat()


def _parse_ts(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class IStorage(Protocol):
    """Persistent storage for users, conversations, messages and reviews."""

    async def init(self) -> None:
        """Open the connection and create tables."""
        ...

    async def close(self) -> None:
        """Close the connection."""
        ...

    # Users
    async def insert_user(self, user: User) -> None: ...

    async def update_user(self, user: User) -> None: ...

    async def get_user(self, user_id: str) -> User | None: ...

    async def get_users(self, user_ids: list[str]) -> dict[str, User]: ...

    async def get_user_by_email(self, email: str) -> User | None: ...

    async def get_user_by_username(self, username: str) -> User | None: ...

    async def search_users(
        self, query: str, exclude_id: str | None = None, limit: int = 20
    ) -> list[User]: ...

    # Direct conversations
    async def get_or_insert_direct(self, conversation: DirectMessage) -> DirectMessage:
        """Insert unless the member pair already exists; return the stored row."""
        ...

    async def find_direct(self, user_a: str, user_b: str) -> DirectMessage | None: ...

    async def get_direct(self, conversation_id: str) -> DirectMessage | None: ...

    async def list_directs_for_user(self, user_id: str) -> list[DirectMessage]:
        """Direct conversations of a user, most recently updated first."""
        ...

    # Group chats
    async def insert_group(self, group: GroupChat) -> None: ...

    async def update_group(self, group: GroupChat) -> None: ...

    async def get_group(self, group_id: str) -> GroupChat | None: ...

    async def list_groups_for_user(self, user_id: str) -> list[GroupChat]: ...

    async def delete_group(self, group_id: str) -> bool:
        """Delete a group and its messages."""
        ...

    async def set_last_message(
        self,
        ref: ConversationRef,
        message_id: str | None,
        updated_at: datetime | None = None,
    ) -> None:
        """Point a conversation at its latest message, optionally touching updated_at."""
        ...

    # Messages
    async def insert_message(self, message: Message) -> None: ...

    async def get_message(self, message_id: str) -> Message | None: ...

    async def list_messages(
        self, ref: ConversationRef, offset: int, limit: int
    ) -> list[Message]:
        """Messages of a conversation, newest first."""
        ...

    async def latest_message(self, ref: ConversationRef) -> Message | None: ...

    async def add_reader(
        self, message_id: str, user_id: str, updated_at: datetime
    ) -> None:
        """Add a user to the read-set and mark the message read."""
        ...

    async def delete_message(self, message_id: str) -> bool: ...

    # Reviews
    async def insert_review(self, review: Review) -> None: ...

    async def update_review(self, review: Review) -> None: ...

    async def get_review(self, review_id: str) -> Review | None: ...

    async def list_reviews(self, user_id: str | None = None) -> list[Review]:
        """Reviews newest first, optionally for one author."""
        ...

    async def delete_review(self, review_id: str) -> bool: ...

    # Lifecycle
    async def clear(self) -> None:
        """Clear all data."""
        ...


class Storage:
    """SQLite storage implementation."""

    def __init__(self, db_path: str | Path | None = None):
        if db_path is None:
            self._db_path = resolve_db_path()
        else:
            self._db_path = resolve_db_path(db_path)
        self._conn: aiosqlite.Connection | None = None

    async def init(self) -> None:
        """Open the connection and create tables."""
        self._conn = await aiosqlite.connect(self._db_path)
        self._conn.row_factory = aiosqlite.Row

        schema_path = Path(__file__).parent / "schema.sql"
        with open(schema_path, "r", encoding="utf-8") as f:
            schema_sql = f.read()
        await self._conn.executescript(schema_sql)
        await self._conn.execute("PRAGMA foreign_keys = ON")
        await self._conn.commit()

    async def close(self) -> None:
        """Close the connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    @property
    def _db(self) -> aiosqlite.Connection:
        if not self._conn:
            raise RuntimeError("Storage not initialized")
        return self._conn

    async def _fetchone(self, query: str, params: tuple = ()) -> aiosqlite.Row | None:
        async with self._db.execute(query, params) as cursor:
            return await cursor.fetchone()

    async def _fetchall(self, query: str, params: tuple = ()) -> list[aiosqlite.Row]:
        async with self._db.execute(query, params) as cursor:
            return list(await cursor.fetchall())

    # Users
    @staticmethod
    def _row_to_user(row: aiosqlite.Row) -> User:
        return User(
            id=row["id"],
            username=row["username"],
            email=row["email"],
            password_hash=row["password_hash"],
            profile_picture=row["profile_picture"],
            avatar=row["avatar"],
            created_at=_parse_ts(row["created_at"]),
            updated_at=_parse_ts(row["updated_at"]),
        )

    async def insert_user(self, user: User) -> None:
        await self._db.execute(
            """
            INSERT INTO users
            (id, username, email, password_hash, profile_picture, avatar, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                user.id,
                user.username,
                user.email,
                user.password_hash,
                user.profile_picture,
                user.avatar,
                _ts(user.created_at),
                _ts(user.updated_at),
            ),
        )
        await self._db.commit()

    async def update_user(self, user: User) -> None:
        await self._db.execute(
            """
            UPDATE users
            SET username = ?, email = ?, password_hash = ?, profile_picture = ?,
                avatar = ?, updated_at = ?
            WHERE id = ?
            """,
            (
                user.username,
                user.email,
                user.password_hash,
                user.profile_picture,
                user.avatar,
                _ts(user.updated_at),
                user.id,
            ),
        )
        await self._db.commit()

    async def get_user(self, user_id: str) -> User | None:
        row = await self._fetchone("SELECT * FROM users WHERE id = ?", (user_id,))
        return self._row_to_user(row) if row else None

    async def get_users(self, user_ids: list[str]) -> dict[str, User]:
        ids = list(dict.fromkeys(user_ids))
        if not ids:
            return {}
        placeholders = ",".join("?" * len(ids))
        rows = await self._fetchall(
            f"SELECT * FROM users WHERE id IN ({placeholders})", tuple(ids)
        )
        return {row["id"]: self._row_to_user(row) for row in rows}

    async def get_user_by_email(self, email: str) -> User | None:
        row = await self._fetchone(
            "SELECT * FROM users WHERE email = ? COLLATE NOCASE", (email,)
        )
        return self._row_to_user(row) if row else None

    async def get_user_by_username(self, username: str) -> User | None:
        row = await self._fetchone("SELECT * FROM users WHERE username = ?", (username,))
        return self._row_to_user(row) if row else None

    async def search_users(
        self, query: str, exclude_id: str | None = None, limit: int = 20
    ) -> list[User]:
        pattern = f"%{_escape_like(query)}%"
        rows = await self._fetchall(
            """
            SELECT * FROM users
            WHERE id != ?
              AND (username LIKE ? ESCAPE '\\' OR email LIKE ? ESCAPE '\\')
            ORDER BY username
            LIMIT ?
            """,
            (exclude_id or "", pattern, pattern, limit),
        )
        return [self._row_to_user(row) for row in rows]

    # Direct conversations
    @staticmethod
    def _row_to_direct(row: aiosqlite.Row) -> DirectMessage:
        return DirectMessage(
            id=row["id"],
            member_ids=[row["member_low"], row["member_high"]],
            last_message_id=row["last_message_id"],
            created_at=_parse_ts(row["created_at"]),
            updated_at=_parse_ts(row["updated_at"]),
        )

    async def get_or_insert_direct(self, conversation: DirectMessage) -> DirectMessage:
        low, high = sorted(conversation.member_ids)
        await self._db.execute(
            """
            INSERT OR IGNORE INTO direct_messages
            (id, member_low, member_high, last_message_id, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                conversation.id,
                low,
                high,
                conversation.last_message_id,
                _ts(conversation.created_at),
                _ts(conversation.updated_at),
            ),
        )
        await self._db.commit()

        stored = await self.find_direct(low, high)
        if stored is None:
            raise RuntimeError("Direct conversation vanished after insert")
        return stored

    async def find_direct(self, user_a: str, user_b: str) -> DirectMessage | None:
        low, high = sorted((user_a, user_b))
        row = await self._fetchone(
            "SELECT * FROM direct_messages WHERE member_low = ? AND member_high = ?",
            (low, high),
        )
        return self._row_to_direct(row) if row else None

    async def get_direct(self, conversation_id: str) -> DirectMessage | None:
        row = await self._fetchone(
            "SELECT * FROM direct_messages WHERE id = ?", (conversation_id,)
        )
        return self._row_to_direct(row) if row else None

    async def list_directs_for_user(self, user_id: str) -> list[DirectMessage]:
        rows = await self._fetchall(
            """
            SELECT * FROM direct_messages
            WHERE member_low = ? OR member_high = ?
            ORDER BY updated_at DESC, rowid DESC
            """,
            (user_id, user_id),
        )
        return [self._row_to_direct(row) for row in rows]

    # Group chats
    async def _group_member_ids(self, group_id: str) -> list[str]:
        rows = await self._fetchall(
            "SELECT user_id FROM group_chat_members WHERE group_id = ? ORDER BY position",
            (group_id,),
        )
        return [row["user_id"] for row in rows]

    async def _row_to_group(self, row: aiosqlite.Row) -> GroupChat:
        return GroupChat(
            id=row["id"],
            name=row["name"],
            admin_id=row["admin_id"],
            member_ids=await self._group_member_ids(row["id"]),
            last_message_id=row["last_message_id"],
            created_at=_parse_ts(row["created_at"]),
            updated_at=_parse_ts(row["updated_at"]),
        )

    async def _write_group_members(self, group: GroupChat) -> None:
        await self._db.execute(
            "DELETE FROM group_chat_members WHERE group_id = ?", (group.id,)
        )
        await self._db.executemany(
            "INSERT INTO group_chat_members (group_id, user_id, position) VALUES (?, ?, ?)",
            [(group.id, user_id, i) for i, user_id in enumerate(group.member_ids)],
        )

    async def insert_group(self, group: GroupChat) -> None:
        await self._db.execute(
            """
            INSERT INTO group_chats
            (id, name, admin_id, last_message_id, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                group.id,
                group.name,
                group.admin_id,
                group.last_message_id,
                _ts(group.created_at),
                _ts(group.updated_at),
            ),
        )
        await self._write_group_members(group)
        await self._db.commit()

    async def update_group(self, group: GroupChat) -> None:
        await self._db.execute(
            "UPDATE group_chats SET name = ?, admin_id = ?, updated_at = ? WHERE id = ?",
            (group.name, group.admin_id, _ts(group.updated_at), group.id),
        )
        await self._write_group_members(group)
        await self._db.commit()

    async def get_group(self, group_id: str) -> GroupChat | None:
        row = await self._fetchone("SELECT * FROM group_chats WHERE id = ?", (group_id,))
        return await self._row_to_group(row) if row else None

    async def list_groups_for_user(self, user_id: str) -> list[GroupChat]:
        rows = await self._fetchall(
            """
            SELECT g.* FROM group_chats g
            JOIN group_chat_members m ON m.group_id = g.id
            WHERE m.user_id = ?
            ORDER BY g.updated_at DESC, g.rowid DESC
            """,
            (user_id,),
        )
        return [await self._row_to_group(row) for row in rows]

    async def delete_group(self, group_id: str) -> bool:
        await self._db.execute(
            "DELETE FROM messages WHERE chat_kind = ? AND chat_id = ?",
            (ConversationKind.GROUP.value, group_id),
        )
        cursor = await self._db.execute("DELETE FROM group_chats WHERE id = ?", (group_id,))
        await self._db.commit()
        return cursor.rowcount > 0

    async def set_last_message(
        self,
        ref: ConversationRef,
        message_id: str | None,
        updated_at: datetime | None = None,
    ) -> None:
        table = _CONVERSATION_TABLES[ref.kind]
        if updated_at is None:
            await self._db.execute(
                f"UPDATE {table} SET last_message_id = ? WHERE id = ?",
                (message_id, ref.id),
            )
        else:
            await self._db.execute(
                f"UPDATE {table} SET last_message_id = ?, updated_at = ? WHERE id = ?",
                (message_id, _ts(updated_at), ref.id),
            )
        await self._db.commit()

    # Messages
    async def _readers(self, message_id: str) -> list[str]:
        rows = await self._fetchall(
            "SELECT user_id FROM message_reads WHERE message_id = ? ORDER BY position",
            (message_id,),
        )
        return [row["user_id"] for row in rows]

    async def _row_to_message(self, row: aiosqlite.Row) -> Message:
        return Message(
            id=row["id"],
            sender_id=row["sender_id"],
            chat=ConversationRef(ConversationKind(row["chat_kind"]), row["chat_id"]),
            content=row["content"],
            attachment_url=row["attachment_url"],
            status=MessageStatus(row["status"]),
            read_by=await self._readers(row["id"]),
            created_at=_parse_ts(row["created_at"]),
            updated_at=_parse_ts(row["updated_at"]),
        )

    async def insert_message(self, message: Message) -> None:
        await self._db.execute(
            """
            INSERT INTO messages
            (id, sender_id, chat_kind, chat_id, content, attachment_url, status,
             created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                message.id,
                message.sender_id,
                message.chat.kind.value,
                message.chat.id,
                message.content,
                message.attachment_url,
                message.status.value,
                _ts(message.created_at),
                _ts(message.updated_at),
            ),
        )
        await self._db.executemany(
            "INSERT OR IGNORE INTO message_reads (message_id, user_id, position) VALUES (?, ?, ?)",
            [(message.id, user_id, i) for i, user_id in enumerate(message.read_by)],
        )
        await self._db.commit()

    async def get_message(self, message_id: str) -> Message | None:
        row = await self._fetchone("SELECT * FROM messages WHERE id = ?", (message_id,))
        return await self._row_to_message(row) if row else None

    async def list_messages(
        self, ref: ConversationRef, offset: int, limit: int
    ) -> list[Message]:
        rows = await self._fetchall(
            """
            SELECT * FROM messages
            WHERE chat_kind = ? AND chat_id = ?
            ORDER BY created_at DESC, rowid DESC
            LIMIT ? OFFSET ?
            """,
            (ref.kind.value, ref.id, limit, offset),
        )
        return [await self._row_to_message(row) for row in rows]

    async def latest_message(self, ref: ConversationRef) -> Message | None:
        messages = await self.list_messages(ref, offset=0, limit=1)
        return messages[0] if messages else None

    async def add_reader(
        self, message_id: str, user_id: str, updated_at: datetime
    ) -> None:
        await self._db.execute(
            """
            INSERT OR IGNORE INTO message_reads (message_id, user_id, position)
            SELECT ?, ?, COALESCE(MAX(position), -1) + 1
            FROM message_reads WHERE message_id = ?
            """,
            (message_id, user_id, message_id),
        )
        await self._db.execute(
            "UPDATE messages SET status = ?, updated_at = ? WHERE id = ?",
            (MessageStatus.READ.value, _ts(updated_at), message_id),
        )
        await self._db.commit()

    async def delete_message(self, message_id: str) -> bool:
        cursor = await self._db.execute("DELETE FROM messages WHERE id = ?", (message_id,))
        await self._db.commit()
        return cursor.rowcount > 0

    # Reviews
    @staticmethod
    def _row_to_review(row: aiosqlite.Row) -> Review:
        return Review(
            id=row["id"],
            user_id=row["user_id"],
            anime_title=row["anime_title"],
            review_text=row["review_text"],
            rating=row["rating"],
            anime_image_url=row["anime_image_url"],
            created_at=_parse_ts(row["created_at"]),
            updated_at=_parse_ts(row["updated_at"]),
        )

    async def insert_review(self, review: Review) -> None:
        await self._db.execute(
            """
            INSERT INTO reviews
            (id, user_id, anime_title, review_text, rating, anime_image_url, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                review.id,
                review.user_id,
                review.anime_title,
                review.review_text,
                review.rating,
                review.anime_image_url,
                _ts(review.created_at),
                _ts(review.updated_at),
            ),
        )
        await self._db.commit()

    async def update_review(self, review: Review) -> None:
        await self._db.execute(
            """
            UPDATE reviews
            SET anime_title = ?, review_text = ?, rating = ?, anime_image_url = ?, updated_at = ?
            WHERE id = ?
            """,
            (
                review.anime_title,
                review.review_text,
                review.rating,
                review.anime_image_url,
                _ts(review.updated_at),
                review.id,
            ),
        )
        await self._db.commit()

    async def get_review(self, review_id: str) -> Review | None:
        row = await self._fetchone("SELECT * FROM reviews WHERE id = ?", (review_id,))
        return self._row_to_review(row) if row else None

    async def list_reviews(self, user_id: str | None = None) -> list[Review]:
        if user_id:
            rows = await self._fetchall(
                "SELECT * FROM reviews WHERE user_id = ? ORDER BY created_at DESC, rowid DESC",
                (user_id,),
            )
        else:
            rows = await self._fetchall(
                "SELECT * FROM reviews ORDER BY created_at DESC, rowid DESC"
            )
        return [self._row_to_review(row) for row in rows]

    async def delete_review(self, review_id: str) -> bool:
        cursor = await self._db.execute("DELETE FROM reviews WHERE id = ?", (review_id,))
        await self._db.commit()
        return cursor.rowcount > 0

    # Lifecycle
    async def clear(self) -> None:
        """Clear all data."""
        tables = [
            "message_reads",
            "messages",
            "group_chat_members",
            "group_chats",
            "direct_messages",
            "reviews",
            "users",
        ]

        for table in tables:
            await self._db.execute(f"DELETE FROM {table}")

        await self._db.commit()
