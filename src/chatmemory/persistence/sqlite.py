"""SQLite storage backend for conversation messages."""

import asyncio
import json
import sqlite3
from collections.abc import Callable, Sequence
from datetime import datetime
from functools import partial
from pathlib import Path
from typing import TypeVar

from chatmemory.errors import PersistenceError
from chatmemory.memory.schema import Message

T = TypeVar("T")


class SQLiteMessageStore:
    """SQLite-based message persistence for one conversation.

    Several conversations can share a database file; each store only sees
    rows with its own ``conversation_id``. Blocking sqlite calls run in the
    default executor.
    """

    def __init__(self, db_path: str | Path, conversation_id: str = "default"):
        """Initialize storage with database path.

        Args:
            db_path: Path to SQLite database file
            conversation_id: Key separating conversations in the same file
        """
        self.db_path = Path(db_path).expanduser()
        self.conversation_id = conversation_id
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._initialize_db()
        except (OSError, sqlite3.Error) as e:
            raise PersistenceError(f"Failed to initialize {self.db_path}: {e}") from e

    def _initialize_db(self) -> None:
        """Create tables and indexes if they don't exist."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("""
                CREATE TABLE IF NOT EXISTS messages (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    conversation_id TEXT NOT NULL,
                    id TEXT NOT NULL,
                    role TEXT NOT NULL,
                    content TEXT NOT NULL,
                    timestamp TEXT NOT NULL,
                    metadata TEXT,
                    UNIQUE (conversation_id, id)
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_messages_conversation "
                "ON messages(conversation_id, seq)"
            )
            conn.commit()

    async def _run(self, func: Callable[[], T], operation: str) -> T:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, func)
        except sqlite3.Error as e:
            raise PersistenceError(f"SQLite {operation} failed: {e}") from e

    async def save_messages(self, messages: Sequence[Message]) -> None:
        if not messages:
            return
        await self._run(partial(self._save_messages, list(messages)), "save")

    def _save_messages(self, messages: list[Message]) -> None:
        rows = [
            (
                self.conversation_id,
                message.id,
                message.role.value,
                message.content,
                message.timestamp.isoformat(),
                json.dumps(message.metadata) if message.metadata is not None else None,
            )
            for message in messages
        ]
        with sqlite3.connect(self.db_path) as conn:
            conn.executemany(
                """
                INSERT INTO messages (conversation_id, id, role, content, timestamp, metadata)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT (conversation_id, id)
                DO UPDATE SET content = excluded.content, metadata = excluded.metadata
            """,
                rows,
            )
            conn.commit()

    async def load_messages(self) -> list[Message]:
        return await self._run(self._load_messages, "load")

    def _load_messages(self) -> list[Message]:
        with sqlite3.connect(self.db_path) as conn:
            conn.row_factory = sqlite3.Row
            cursor = conn.execute(
                "SELECT * FROM messages WHERE conversation_id = ? ORDER BY seq ASC",
                (self.conversation_id,),
            )
            rows = cursor.fetchall()

        return [
            Message(
                id=row["id"],
                role=row["role"],
                content=row["content"],
                timestamp=datetime.fromisoformat(row["timestamp"]),
                metadata=json.loads(row["metadata"]) if row["metadata"] else None,
            )
            for row in rows
        ]

    async def delete_messages(self, message_ids: Sequence[str]) -> None:
        if not message_ids:
            return
        await self._run(partial(self._delete_messages, list(message_ids)), "delete")

    def _delete_messages(self, message_ids: list[str]) -> None:
        with sqlite3.connect(self.db_path) as conn:
            conn.executemany(
                "DELETE FROM messages WHERE conversation_id = ? AND id = ?",
                [(self.conversation_id, message_id) for message_id in message_ids],
            )
            conn.commit()

    async def clear(self) -> None:
        await self._run(self._clear, "clear")

    def _clear(self) -> None:
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("DELETE FROM messages WHERE conversation_id = ?", (self.conversation_id,))
            conn.commit()

    def get_message_count(self) -> int:
        """Get the number of stored messages in this conversation."""
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.execute(
                "SELECT COUNT(*) FROM messages WHERE conversation_id = ?",
                (self.conversation_id,),
            )
            return int(cursor.fetchone()[0])
