"""Async Data Access Layer for the chat_sessions table."""

from __future__ import annotations

import uuid
from typing import List, Optional, Sequence

from models.session_models import NEW_CHAT_TITLE, PREVIEW_LIMIT, TITLE_LIMIT, SessionRecord, utc_now_iso
from utils.database_init import AsyncDatabaseInitializer


class SessionDAL:
    """Data access layer for chat session rows.

    `updated_at` only ever moves forward: updates write the later of the
    stored value and the current time.
    """

    _COLUMNS = ("id", "expert_id", "title", "last_message", "created_at", "updated_at")
    _COLUMN_LIST = ", ".join(_COLUMNS)

    def __init__(self, db_initializer: AsyncDatabaseInitializer) -> None:
        self._db = db_initializer

    async def list_sessions(self, limit: int = 50) -> List[SessionRecord]:
        """Return the most recently updated sessions first."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                f"SELECT {self._COLUMN_LIST} FROM chat_sessions ORDER BY updated_at DESC LIMIT ?",
                (limit,),
            )
            rows = await cur.fetchall()
            return [self._row_to_record(r) for r in rows]

    async def get_session(self, session_id: str) -> Optional[SessionRecord]:
        async with self._db.connection() as conn:
            cur = await conn.execute(
                f"SELECT {self._COLUMN_LIST} FROM chat_sessions WHERE id = ?",
                (session_id,),
            )
            row = await cur.fetchone()
            return self._row_to_record(row) if row else None

    async def create_session(self, expert_id: str, title: str = NEW_CHAT_TITLE) -> SessionRecord:
        """Insert a session for `expert_id` and return the stored row.

        Raises:
            aiosqlite.IntegrityError: If the expert does not exist.
        """
        now = utc_now_iso()
        record = SessionRecord(
            id=uuid.uuid4().hex,
            expert_id=expert_id,
            title=title[:TITLE_LIMIT],
            last_message=None,
            created_at=now,
            updated_at=now,
        )
        async with self._db.connection() as conn:
            await conn.execute(
                f"INSERT INTO chat_sessions ({self._COLUMN_LIST}) VALUES (?, ?, ?, ?, ?, ?)",
                (record.id, record.expert_id, record.title, record.last_message, record.created_at, record.updated_at),
            )
            await conn.commit()
        return record

    async def update_session(
        self,
        session_id: str,
        *,
        title: Optional[str] = None,
        last_message: Optional[str] = None,
    ) -> bool:
        """Update title and/or preview and bump updated_at. Returns True if a row was changed."""
        updates = {
            "title": title[:TITLE_LIMIT] if title is not None else None,
            "last_message": last_message[:PREVIEW_LIMIT] if last_message is not None else None,
        }
        fields = [f"{col} = ?" for col, val in updates.items() if val is not None]
        params = [val for val in updates.values() if val is not None]

        fields.append("updated_at = MAX(updated_at, ?)")
        params.extend([utc_now_iso(), session_id])
        sql = f"UPDATE chat_sessions SET {', '.join(fields)} WHERE id = ?"

        async with self._db.connection() as conn:
            cur = await conn.execute(sql, tuple(params))
            await conn.commit()
            return cur.rowcount > 0

    async def delete_session(self, session_id: str) -> bool:
        """Delete a session; its messages go with it through the FK cascade."""
        async with self._db.connection() as conn:
            cur = await conn.execute("DELETE FROM chat_sessions WHERE id = ?", (session_id,))
            await conn.commit()
            return cur.rowcount > 0

    @staticmethod
    def _row_to_record(row: Sequence[object]) -> SessionRecord:
        return SessionRecord(
            id=row[0],
            expert_id=row[1],
            title=row[2],
            last_message=row[3],
            created_at=row[4],
            updated_at=row[5],
        )
