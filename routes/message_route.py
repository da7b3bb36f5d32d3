from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from controllers.message_controller import list_messages, sync_messages

router = APIRouter(prefix="/api")


class SyncPayload(BaseModel):
    sessionId: Optional[str] = None
    messages: Any = None


@router.post("/messages/sync")
async def post_messages_sync(request: Request, payload: SyncPayload):
    """Upsert a batch of messages keyed on (session id, message id)."""
    try:
        return await sync_messages(request, payload.sessionId, payload.messages)
    except HTTPException:
        raise
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc))


@router.get("/sessions/{session_id}/messages")
async def get_session_messages(request: Request, session_id: str):
    try:
        return await list_messages(request, session_id)
    except HTTPException:
        raise
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc))
