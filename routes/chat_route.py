from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from controllers.chat_controller import stream_chat

router = APIRouter(prefix="/api")


class ChatPayload(BaseModel):
    messages: Any = None
    presetId: Optional[str] = None
    expertId: Optional[str] = None
    sessionId: Optional[str] = None


@router.post("/chat")
async def post_chat(request: Request, payload: ChatPayload):
    """Stream an assistant reply for the given history as Server-Sent Events."""
    try:
        return await stream_chat(request, payload.messages, payload.presetId, payload.expertId)
    except HTTPException:
        raise
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc))
