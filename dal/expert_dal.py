"""Async Data Access Layer for the experts table.

Provides ExpertDAL with async CRUD operations compatible with
`utils.database_init.AsyncDatabaseInitializer`.
"""

from __future__ import annotations

import uuid
from typing import Iterable, List, Optional, Sequence, Tuple

from models.expert_record import ExpertRecord
from models.session_models import utc_now_iso
from utils.database_init import AsyncDatabaseInitializer


class ExpertDAL:
    """Data access layer for expert persona rows.

    The constructor accepts an `AsyncDatabaseInitializer` (or any object
    exposing an async `connection()` context manager that yields an
    `aiosqlite.Connection`).
    """

    _COLUMNS = (
        "id",
        "slug",
        "name",
        "agent_name",
        "description",
        "system_prompt",
        "suggestion_question",
        "sort_order",
        "created_at",
    )
    _COLUMN_LIST = ", ".join(_COLUMNS)
    _ORDER_BY = "ORDER BY sort_order ASC, created_at ASC"
    _EDITABLE = ("slug", "name", "agent_name", "description", "system_prompt", "suggestion_question", "sort_order")

    def __init__(self, db_initializer: AsyncDatabaseInitializer) -> None:
        self._db = db_initializer

    async def list_experts(self, limit: int = 200) -> List[ExpertRecord]:
        """Return experts in list order (sort_order, then creation time)."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                f"SELECT {self._COLUMN_LIST} FROM experts {self._ORDER_BY} LIMIT ?",
                (limit,),
            )
            rows = await cur.fetchall()
            return [self._row_to_record(r) for r in rows]

    async def get_expert(self, expert_id: str) -> Optional[ExpertRecord]:
        """Return the expert for `expert_id`, or None if not found."""
        async with self._db.connection() as conn:
            cur = await conn.execute(
                f"SELECT {self._COLUMN_LIST} FROM experts WHERE id = ?",
                (expert_id,),
            )
            row = await cur.fetchone()
            return self._row_to_record(row) if row else None

    async def max_sort_order(self) -> int:
        """Return the highest sort_order in use, or -1 for an empty table."""
        async with self._db.connection() as conn:
            cur = await conn.execute("SELECT MAX(sort_order) FROM experts")
            row = await cur.fetchone()
            return int(row[0]) if row and row[0] is not None else -1

    async def create_expert(self, record: ExpertRecord) -> ExpertRecord:
        """Insert a new expert row and return it with id and created_at filled in.

        Raises:
            aiosqlite.IntegrityError: If the slug is already taken.
        """
        expert_id = record.id or uuid.uuid4().hex
        created_at = record.created_at or utc_now_iso()

        async with self._db.connection() as conn:
            await conn.execute(
                f"INSERT INTO experts ({self._COLUMN_LIST}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    expert_id,
                    record.slug,
                    record.name,
                    record.agent_name,
                    record.description,
                    record.system_prompt,
                    record.suggestion_question,
                    record.sort_order,
                    created_at,
                ),
            )
            await conn.commit()

        record.id = expert_id
        record.created_at = created_at
        return record

    async def update_expert(self, expert_id: str, record: ExpertRecord) -> bool:
        """Overwrite the editable fields of an expert. Returns True if a row was changed."""
        values = [getattr(record, col) for col in self._EDITABLE]
        assignments = ", ".join(f"{col} = ?" for col in self._EDITABLE)

        async with self._db.connection() as conn:
            cur = await conn.execute(
                f"UPDATE experts SET {assignments} WHERE id = ?",
                (*values, expert_id),
            )
            await conn.commit()
            return cur.rowcount > 0

    async def update_sort_orders(self, orders: Iterable[Tuple[str, int]]) -> None:
        """Persist `(id, sort_order)` pairs in a single transaction."""
        params = [(sort_order, expert_id) for expert_id, sort_order in orders]
        if not params:
            return
        async with self._db.connection() as conn:
            await conn.executemany("UPDATE experts SET sort_order = ? WHERE id = ?", params)
            await conn.commit()

    async def delete_expert(self, expert_id: str) -> bool:
        """Delete an expert by id. Returns True if a row was deleted.

        Raises:
            aiosqlite.IntegrityError: If sessions still reference the expert.
        """
        async with self._db.connection() as conn:
            cur = await conn.execute("DELETE FROM experts WHERE id = ?", (expert_id,))
            await conn.commit()
            return cur.rowcount > 0

    async def upsert_by_slug(self, records: Iterable[ExpertRecord]) -> None:
        """Insert experts, overwriting the editable fields of rows with the same slug."""
        now = utc_now_iso()
        params = [
            (
                uuid.uuid4().hex,
                r.slug,
                r.name,
                r.agent_name,
                r.description,
                r.system_prompt,
                r.suggestion_question,
                r.sort_order,
                now,
            )
            for r in records
        ]
        updates = ", ".join(f"{col} = excluded.{col}" for col in self._EDITABLE if col != "slug")
        async with self._db.connection() as conn:
            await conn.executemany(
                f"INSERT INTO experts ({self._COLUMN_LIST}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?) "
                f"ON CONFLICT(slug) DO UPDATE SET {updates}",
                params,
            )
            await conn.commit()

    @staticmethod
    def _row_to_record(row: Sequence[object]) -> ExpertRecord:
        """Convert a DB row tuple into an ExpertRecord."""
        return ExpertRecord(
            id=row[0],
            slug=row[1],
            name=row[2],
            agent_name=row[3],
            description=row[4],
            system_prompt=row[5],
            suggestion_question=row[6],
            sort_order=int(row[7] or 0),
            created_at=row[8],
        )
