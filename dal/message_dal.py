"""Async Data Access Layer for the chat_messages table."""

from __future__ import annotations

import json
import logging
from typing import Iterable, List, Sequence

from models.session_models import ChatMessage, coerce_parts, parts_text, utc_now_iso
from utils.database_init import AsyncDatabaseInitializer


class MessageDAL:
    """Data access layer for chat message rows.

    Rows are keyed on `(session_id, ui_message_id)`; writes go through
    `upsert_messages` so repeated syncs of the same message overwrite
    instead of duplicating.
    """

    def __init__(self, db_initializer: AsyncDatabaseInitializer) -> None:
        self._db = db_initializer

    async def list_messages(self, session_id: str) -> List[ChatMessage]:
        """Return the session's messages in creation order."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                "SELECT ui_message_id, role, parts, content, created_at FROM chat_messages "
                "WHERE session_id = ? ORDER BY created_at ASC, id ASC",
                (session_id,),
            )
            rows = await cur.fetchall()
            return [self._row_to_message(r) for r in rows]

    async def upsert_messages(self, session_id: str, messages: Iterable[ChatMessage]) -> int:
        """Insert or overwrite messages for a session as one batch.

        Returns:
            The number of rows written.

        Raises:
            aiosqlite.IntegrityError: If the session does not exist.
        """
        now = utc_now_iso()
        params = [
            (
                session_id,
                message.id,
                message.role,
                parts_text(message.parts),
                json.dumps(message.parts),
                message.created_at or now,
            )
            for message in messages
        ]
        if not params:
            return 0

        async with self._db.connection() as conn:
            await conn.executemany(
                "INSERT INTO chat_messages (session_id, ui_message_id, role, content, parts, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?) "
                "ON CONFLICT(session_id, ui_message_id) DO UPDATE SET "
                "role = excluded.role, content = excluded.content, parts = excluded.parts",
                params,
            )
            await conn.commit()
        return len(params)

    @staticmethod
    def _row_to_message(row: Sequence[object]) -> ChatMessage:
        """Convert a DB row tuple into a ChatMessage, tolerating malformed parts JSON."""
        try:
            parts = coerce_parts(json.loads(row[2] or "[]"))
        except (TypeError, json.JSONDecodeError):
            logging.warning(f"Discarding malformed parts for message {row[0]}")
            parts = []
        if not parts and row[3]:
            parts = [{"type": "text", "text": row[3]}]
        return ChatMessage(id=str(row[0]), role=str(row[1]), parts=parts, created_at=row[4])
