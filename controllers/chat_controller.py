"""Stream assistant replies for the chat endpoint as Server-Sent Events."""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any, AsyncIterator, Dict, List, Optional

from fastapi import HTTPException, Request
from fastapi.responses import StreamingResponse

from dal.expert_dal import ExpertDAL
from models.session_models import ChatMessage
from services.openai.chat_completion import ChatCompletionStreamer
from services.openai.media_inputs import inline_stored_files
from services.personas import resolve_system_prompt


def sse_event(payload: Dict[str, Any]) -> str:
    """Encode one payload as a Server-Sent Events frame."""
    return f"data: {json.dumps(payload)}\n\n"


async def _system_prompt_for(request: Request, preset_id: Optional[str], expert_id: Optional[str]) -> str:
    """Prefer the stored expert's prompt; fall back to the preset table."""
    if expert_id:
        expert = await ExpertDAL(request.app.state.db_initializer).get_expert(expert_id)
        if expert is not None and expert.system_prompt.strip():
            return expert.system_prompt
    return resolve_system_prompt(preset_id)


async def _event_stream(
    streamer: ChatCompletionStreamer,
    messages: List[ChatMessage],
    system_prompt: str,
) -> AsyncIterator[str]:
    message_id = uuid.uuid4().hex
    yield sse_event({"type": "start", "messageId": message_id})
    try:
        async for delta in streamer.stream_text(messages=messages, system_prompt=system_prompt):
            yield sse_event({"type": "text-delta", "delta": delta})
    except Exception as exc:  # pylint: disable=broad-exception-caught
        # Headers are already sent; report the failure in-band.
        logging.error(f"Chat stream failed: {exc}")
        yield sse_event({"type": "error", "errorText": str(exc) or "Completion failed."})
        return
    yield sse_event({"type": "finish", "messageId": message_id})


async def stream_chat(
    request: Request,
    messages: Any,
    preset_id: Optional[str] = None,
    expert_id: Optional[str] = None,
) -> StreamingResponse:
    """Validate the history and start streaming the assistant reply.

    Args:
        request: FastAPI Request (used to access app.state for shared clients).
        messages: UI messages as sent by the client; must be a list.
        preset_id: Optional persona preset key.
        expert_id: Optional expert id whose stored system prompt takes precedence.

    Raises:
        HTTPException(400) if the payload is not a list of messages.
    """
    if not isinstance(messages, list):
        raise HTTPException(status_code=400, detail="Invalid messages payload.")

    history = [ChatMessage.from_dict(m) for m in messages if isinstance(m, dict)]
    if not any(m.parts for m in history):
        raise HTTPException(status_code=400, detail="Invalid messages payload.")

    system_prompt = await _system_prompt_for(request, preset_id, expert_id)
    history = await inline_stored_files(history, request.app.state.attachment_store)
    streamer = ChatCompletionStreamer(request.app.state.openai_client)

    return StreamingResponse(
        _event_stream(streamer, history, system_prompt),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
