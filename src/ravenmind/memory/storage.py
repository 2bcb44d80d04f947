"""SQLite storage backend for conversation threads."""

import asyncio
import sqlite3
from datetime import datetime, timedelta
from pathlib import Path

from ravenmind.memory.schema import ConversationMessage, ConversationMetadata, utcnow


class ConversationStore:
    """SQLite-based storage for per-(user, thread) conversations.

    Threads expire after ``ttl_seconds`` without activity: the next read or
    append starts them fresh. Public methods are coroutines that run the
    blocking SQLite work in a worker thread.
    """

    def __init__(
        self,
        db_path: str | Path,
        ttl_seconds: int = 1800,
        max_messages: int = 100,
    ):
        """Initialize storage with database path.

        Args:
            db_path: Path to SQLite database file
            ttl_seconds: Inactivity after which a thread expires
            max_messages: Messages kept per thread (oldest dropped first)
        """
        self.db_path = Path(db_path).expanduser()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.ttl = timedelta(seconds=ttl_seconds)
        self.max_messages = max_messages
        self._initialize_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _initialize_db(self) -> None:
        """Create tables and indexes if they don't exist."""
        with self._connect() as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("""
                CREATE TABLE IF NOT EXISTS threads (
                    user_id TEXT NOT NULL,
                    thread_id TEXT NOT NULL,
                    guild_id TEXT,
                    message_count INTEGER NOT NULL DEFAULT 0,
                    last_activity_at TIMESTAMP NOT NULL,
                    summarized INTEGER NOT NULL DEFAULT 0,
                    summary TEXT,
                    PRIMARY KEY (user_id, thread_id)
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS messages (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    thread_id TEXT NOT NULL,
                    role TEXT NOT NULL,
                    content TEXT NOT NULL,
                    created_at TIMESTAMP NOT NULL
                )
            """)

            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_messages_thread ON messages(user_id, thread_id, id)"
            )
            conn.commit()

    # -- sync implementation ----------------------------------------------

    def _is_expired(self, last_activity_at: str) -> bool:
        return utcnow() - datetime.fromisoformat(last_activity_at) > self.ttl

    def _expire_if_stale(self, conn: sqlite3.Connection, user_id: str, thread_id: str) -> None:
        row = conn.execute(
            "SELECT last_activity_at FROM threads WHERE user_id = ? AND thread_id = ?",
            (user_id, thread_id),
        ).fetchone()
        if row and self._is_expired(row["last_activity_at"]):
            self._delete_thread(conn, user_id, thread_id)

    def _delete_thread(self, conn: sqlite3.Connection, user_id: str, thread_id: str) -> None:
        conn.execute(
            "DELETE FROM messages WHERE user_id = ? AND thread_id = ?", (user_id, thread_id)
        )
        conn.execute("DELETE FROM threads WHERE user_id = ? AND thread_id = ?", (user_id, thread_id))

    def _append_sync(
        self,
        user_id: str,
        thread_id: str,
        message: ConversationMessage,
        guild_id: str | None,
    ) -> None:
        now = utcnow().isoformat()
        with self._connect() as conn:
            self._expire_if_stale(conn, user_id, thread_id)
            conn.execute(
                """
                INSERT INTO messages (user_id, thread_id, role, content, created_at)
                VALUES (?, ?, ?, ?, ?)
            """,
                (user_id, thread_id, message.role, message.content, message.timestamp.isoformat()),
            )
            conn.execute(
                """
                INSERT INTO threads (user_id, thread_id, guild_id, message_count, last_activity_at)
                VALUES (?, ?, ?, 1, ?)
                ON CONFLICT(user_id, thread_id) DO UPDATE SET
                    message_count = message_count + 1,
                    last_activity_at = excluded.last_activity_at
            """,
                (user_id, thread_id, guild_id, now),
            )
            # Keep only the newest max_messages
            conn.execute(
                """
                DELETE FROM messages WHERE user_id = ? AND thread_id = ? AND id NOT IN (
                    SELECT id FROM messages WHERE user_id = ? AND thread_id = ?
                    ORDER BY id DESC LIMIT ?
                )
            """,
                (user_id, thread_id, user_id, thread_id, self.max_messages),
            )
            conn.commit()

    def _recent_sync(self, user_id: str, thread_id: str, limit: int) -> list[ConversationMessage]:
        with self._connect() as conn:
            self._expire_if_stale(conn, user_id, thread_id)
            conn.commit()
            rows = conn.execute(
                """
                SELECT role, content, created_at FROM messages
                WHERE user_id = ? AND thread_id = ?
                ORDER BY id DESC LIMIT ?
            """,
                (user_id, thread_id, limit),
            ).fetchall()

        return [
            ConversationMessage(
                role=row["role"],
                content=row["content"],
                timestamp=datetime.fromisoformat(row["created_at"]),
            )
            for row in reversed(rows)
        ]

    def _get_metadata_sync(self, user_id: str, thread_id: str) -> ConversationMetadata | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM threads WHERE user_id = ? AND thread_id = ?",
                (user_id, thread_id),
            ).fetchone()

        if not row:
            return None
        return ConversationMetadata(
            message_count=row["message_count"],
            last_activity_at=datetime.fromisoformat(row["last_activity_at"]),
            summarized=bool(row["summarized"]),
            summary=row["summary"],
        )

    def _set_metadata_sync(self, user_id: str, thread_id: str, metadata: ConversationMetadata) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO threads
                (user_id, thread_id, message_count, last_activity_at, summarized, summary)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(user_id, thread_id) DO UPDATE SET
                    message_count = excluded.message_count,
                    last_activity_at = excluded.last_activity_at,
                    summarized = excluded.summarized,
                    summary = excluded.summary
            """,
                (
                    user_id,
                    thread_id,
                    metadata.message_count,
                    metadata.last_activity_at.isoformat(),
                    int(metadata.summarized),
                    metadata.summary,
                ),
            )
            conn.commit()

    def _clear_sync(self, user_id: str, thread_id: str) -> None:
        with self._connect() as conn:
            self._delete_thread(conn, user_id, thread_id)
            conn.commit()

    def _prune_sync(self) -> int:
        cutoff = (utcnow() - self.ttl).isoformat()
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT user_id, thread_id FROM threads WHERE last_activity_at < ?", (cutoff,)
            ).fetchall()
            for row in rows:
                self._delete_thread(conn, row["user_id"], row["thread_id"])
            conn.commit()
        return len(rows)

    # -- async API --------------------------------------------------------

    async def append(
        self,
        user_id: str,
        thread_id: str,
        message: ConversationMessage,
        guild_id: str | None = None,
    ) -> None:
        """Append a message and bump the thread's metadata."""
        await asyncio.to_thread(self._append_sync, user_id, thread_id, message, guild_id)

    async def recent(self, user_id: str, thread_id: str, limit: int = 20) -> list[ConversationMessage]:
        """Return up to ``limit`` most recent messages, oldest first."""
        return await asyncio.to_thread(self._recent_sync, user_id, thread_id, limit)

    async def get_metadata(self, user_id: str, thread_id: str) -> ConversationMetadata | None:
        return await asyncio.to_thread(self._get_metadata_sync, user_id, thread_id)

    async def set_metadata(self, user_id: str, thread_id: str, metadata: ConversationMetadata) -> None:
        await asyncio.to_thread(self._set_metadata_sync, user_id, thread_id, metadata)

    async def clear(self, user_id: str, thread_id: str) -> None:
        """Delete a thread and its messages."""
        await asyncio.to_thread(self._clear_sync, user_id, thread_id)

    async def prune_expired(self) -> int:
        """Delete every expired thread.

        Returns:
            Number of threads removed
        """
        return await asyncio.to_thread(self._prune_sync)
