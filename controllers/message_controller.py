"""Persist message batches and read conversation history."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request

from dal.message_dal import MessageDAL
from dal.session_dal import SessionDAL
from models.session_models import ChatMessage, session_patch_for


async def sync_messages(request: Request, session_id: Optional[str], messages: Any) -> Dict[str, Any]:
    """Upsert a batch of UI messages, then update the owning session row.

    The session update is issued only after the message batch is written.

    Raises:
        HTTPException(400) for a missing session id or a malformed batch,
        HTTPException(404) if the session does not exist.
    """
    if not session_id:
        raise HTTPException(status_code=400, detail="Missing sessionId.")
    if not isinstance(messages, list):
        raise HTTPException(status_code=400, detail="Invalid messages payload.")

    batch = [ChatMessage.from_dict(m) for m in messages if isinstance(m, dict)]
    if any(not m.id for m in batch):
        raise HTTPException(status_code=400, detail="Every message needs an id.")

    db_initializer = request.app.state.db_initializer
    session_dal = SessionDAL(db_initializer)
    session = await session_dal.get_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")

    try:
        written = await MessageDAL(db_initializer).upsert_messages(session_id, batch)
    except Exception as exc:
        logging.error(f"Failed to persist messages for session {session_id}: {exc}")
        raise HTTPException(status_code=500, detail=f"Failed to persist messages. {exc}") from exc

    patch = session_patch_for(batch, session.title)
    if patch:
        try:
            await session_dal.update_session(session_id, **patch)
        except Exception as exc:
            logging.error(f"Failed to update session {session_id}: {exc}")
            raise HTTPException(status_code=500, detail=f"Failed to update session. {exc}") from exc

    return {"ok": True, "written": written}


async def list_messages(request: Request, session_id: str) -> Dict[str, Any]:
    """Return the session's messages in creation order."""
    messages = await MessageDAL(request.app.state.db_initializer).list_messages(session_id)
    return {"messages": [m.to_dict() for m in messages]}
