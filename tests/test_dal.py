"""Tests for the expert, session and message data access layers."""

import aiosqlite
import pytest

from dal.expert_dal import ExpertDAL
from dal.message_dal import MessageDAL
from dal.session_dal import SessionDAL
from models.expert_record import ExpertRecord
from models.session_models import NEW_CHAT_TITLE, ChatMessage
from services.personas import expert_seeds


def _expert(slug: str, sort_order: int = 0) -> ExpertRecord:
    return ExpertRecord(
        id=None,
        slug=slug,
        name=slug.title(),
        agent_name=slug.title(),
        system_prompt=f"You are {slug}.",
        sort_order=sort_order,
    )


def _text(message_id: str, role: str, text: str, created_at: str | None = None) -> ChatMessage:
    return ChatMessage(id=message_id, role=role, parts=[{"type": "text", "text": text}], created_at=created_at)


@pytest.mark.asyncio
async def test_seed_upsert_is_idempotent_on_slug(db_initializer):
    dal = ExpertDAL(db_initializer)
    await dal.upsert_by_slug(expert_seeds())
    await dal.upsert_by_slug(expert_seeds())

    experts = await dal.list_experts()
    assert [e.slug for e in experts] == [s.slug for s in expert_seeds()]
    assert await dal.max_sort_order() == 3


@pytest.mark.asyncio
async def test_experts_listed_by_sort_order(db_initializer):
    dal = ExpertDAL(db_initializer)
    first = await dal.create_expert(_expert("alpha", 1))
    second = await dal.create_expert(_expert("beta", 0))

    assert [e.id for e in await dal.list_experts()] == [second.id, first.id]

    await dal.update_sort_orders([(first.id, 0), (second.id, 1)])
    assert [e.id for e in await dal.list_experts()] == [first.id, second.id]


@pytest.mark.asyncio
async def test_duplicate_slug_is_rejected(db_initializer):
    dal = ExpertDAL(db_initializer)
    await dal.create_expert(_expert("alpha"))
    with pytest.raises(aiosqlite.IntegrityError):
        await dal.create_expert(_expert("alpha"))


@pytest.mark.asyncio
async def test_expert_referenced_by_session_cannot_be_deleted(db_initializer):
    expert = await ExpertDAL(db_initializer).create_expert(_expert("alpha"))
    await SessionDAL(db_initializer).create_session(expert.id)

    with pytest.raises(aiosqlite.IntegrityError):
        await ExpertDAL(db_initializer).delete_expert(expert.id)


@pytest.mark.asyncio
async def test_session_update_never_moves_updated_at_back(db_initializer):
    expert = await ExpertDAL(db_initializer).create_expert(_expert("alpha"))
    dal = SessionDAL(db_initializer)
    session = await dal.create_session(expert.id)
    assert session.title == NEW_CHAT_TITLE

    future = "2999-01-01T00:00:00.000000+00:00"
    async with db_initializer.connection() as conn:
        await conn.execute("UPDATE chat_sessions SET updated_at = ? WHERE id = ?", (future, session.id))
        await conn.commit()

    assert await dal.update_session(session.id, title="t" * 80, last_message="p" * 900)
    stored = await dal.get_session(session.id)
    assert stored.updated_at == future
    assert len(stored.title) == 60
    assert len(stored.last_message) == 500


@pytest.mark.asyncio
async def test_sessions_listed_most_recent_first(db_initializer):
    expert = await ExpertDAL(db_initializer).create_expert(_expert("alpha"))
    dal = SessionDAL(db_initializer)
    older = await dal.create_session(expert.id)
    newer = await dal.create_session(expert.id)
    await dal.update_session(older.id, last_message="bump")

    assert [s.id for s in await dal.list_sessions()] == [older.id, newer.id]


@pytest.mark.asyncio
async def test_message_upsert_overwrites_same_id(db_initializer):
    expert = await ExpertDAL(db_initializer).create_expert(_expert("alpha"))
    session = await SessionDAL(db_initializer).create_session(expert.id)
    dal = MessageDAL(db_initializer)

    await dal.upsert_messages(session.id, [_text("a1", "assistant", "partial")])
    await dal.upsert_messages(session.id, [_text("a1", "assistant", "final answer")])

    assert len(await dal.list_messages(session.id)) == 1
    [message] = await dal.list_messages(session.id)
    assert message.text == "final answer"


@pytest.mark.asyncio
async def test_messages_listed_in_creation_order(db_initializer):
    expert = await ExpertDAL(db_initializer).create_expert(_expert("alpha"))
    session = await SessionDAL(db_initializer).create_session(expert.id)
    dal = MessageDAL(db_initializer)

    await dal.upsert_messages(
        session.id,
        [
            _text("m2", "assistant", "second", "2024-05-01T10:00:02+00:00"),
            _text("m1", "user", "first", "2024-05-01T10:00:01+00:00"),
        ],
    )
    assert [m.id for m in await dal.list_messages(session.id)] == ["m1", "m2"]


@pytest.mark.asyncio
async def test_deleting_session_cascades_to_messages(db_initializer):
    expert = await ExpertDAL(db_initializer).create_expert(_expert("alpha"))
    sessions = SessionDAL(db_initializer)
    session = await sessions.create_session(expert.id)
    await MessageDAL(db_initializer).upsert_messages(session.id, [_text("m1", "user", "hi")])

    assert await sessions.delete_session(session.id)
    assert await MessageDAL(db_initializer).list_messages(session.id) == []
    assert await sessions.get_session(session.id) is None


@pytest.mark.asyncio
async def test_messages_for_missing_session_are_rejected(db_initializer):
    with pytest.raises(aiosqlite.IntegrityError):
        await MessageDAL(db_initializer).upsert_messages("missing", [_text("m1", "user", "hi")])


def test_initializer_requires_a_directory(monkeypatch):
    monkeypatch.delenv("DATABASE_DIR", raising=False)
    from utils.database_init import AsyncDatabaseInitializer

    with pytest.raises(RuntimeError):
        AsyncDatabaseInitializer()
