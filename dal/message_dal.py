"""Async Data Access Layer for the MESSAGE table.

Provides `MessageDAL`, a durable message log compatible with
`utils.database_init.AsyncDatabaseInitializer`. Rows are keyed by message id
so repeated inserts of the same message are ignored.
"""

from __future__ import annotations

from typing import Iterable, List, Sequence

from models.assistant_models import Message
from utils.database_init import AsyncDatabaseInitializer


class MessageDAL:
    """Data access layer for MESSAGE records.

    The constructor accepts an `AsyncDatabaseInitializer` (or any object
    exposing an async `connection()` context manager that yields an
    `aiosqlite.Connection`).
    """

    _INSERT_SQL = (
        "INSERT OR IGNORE INTO MESSAGE (id, thread_id, role, created_at, message_json) "
        "VALUES (?, ?, ?, ?, ?)"
    )

    def __init__(self, db_initializer: AsyncDatabaseInitializer) -> None:
        self._db = db_initializer

    async def add(self, message: Message) -> bool:
        """Insert `message` unless its id is already stored.

        Returns:
            True if a row was inserted, False for a duplicate id.
        """
        async with self._db.connection() as conn:
            cur = await conn.execute(self._INSERT_SQL, self._to_row(message))
            await conn.commit()
            return cur.rowcount > 0

    async def add_all(self, messages: Iterable[Message]) -> int:
        """Insert messages in order in one transaction; returns how many were new."""
        rows = [self._to_row(message) for message in messages]
        if not rows:
            return 0
        added = 0
        async with self._db.connection() as conn:
            for row in rows:
                cur = await conn.execute(self._INSERT_SQL, row)
                added += max(cur.rowcount, 0)
            await conn.commit()
        return added

    async def query(self, thread_id: str) -> List[Message]:
        """Return the thread's messages in insertion order."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                "SELECT message_json FROM MESSAGE WHERE thread_id = ? ORDER BY rowid",
                (thread_id,),
            )
            rows = await cur.fetchall()
            return [self._row_to_message(r) for r in rows]

    async def count(self, thread_id: str) -> int:
        async with self._db.connection() as conn:
            cur = await conn.execute("SELECT COUNT(*) FROM MESSAGE WHERE thread_id = ?", (thread_id,))
            row = await cur.fetchone()
            return int(row[0]) if row else 0

    async def list_threads(self) -> List[str]:
        """Return every thread id with at least one stored message, oldest activity first."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                "SELECT thread_id FROM MESSAGE GROUP BY thread_id ORDER BY MIN(rowid)"
            )
            rows = await cur.fetchall()
            return [r[0] for r in rows]

    @staticmethod
    def _to_row(message: Message) -> tuple:
        return (
            message.id,
            message.thread_id,
            message.role,
            message.created_at,
            message.model_dump_json(),
        )

    @staticmethod
    def _row_to_message(row: Sequence[object]) -> Message:
        """Convert a DB row tuple into a Message."""
        return Message.model_validate_json(row[0])
