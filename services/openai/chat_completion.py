"""Streaming chat completions built on the OpenAI Responses API."""

from __future__ import annotations

import logging
import os
import time
from typing import AsyncIterator, List

from openai import AsyncOpenAI

from models.session_models import ChatMessage
from services.openai.media_inputs import build_history_inputs

DEFAULT_MODEL = "gpt-5-mini"


def resolve_model() -> str:
    """Return the configured model id (OPENAI_MODEL), falling back to the default."""
    return (os.getenv("OPENAI_MODEL") or "").strip() or DEFAULT_MODEL


class ChatCompletionStreamer:
    """Stream an assistant reply for a message history and a system prompt."""

    def __init__(self, client: AsyncOpenAI) -> None:
        if client is None:
            raise ValueError("AsyncOpenAI client is required.")
        self.client = client

    async def stream_text(
        self,
        *,
        messages: List[ChatMessage],
        system_prompt: str,
        model: str | None = None,
    ) -> AsyncIterator[str]:
        """Yield text deltas as the model produces them.

        Raises:
            ValueError: If the history holds nothing the model can read.
            RuntimeError: If the stream reports a failure.
        """
        inputs = build_history_inputs(messages)
        if not inputs:
            raise ValueError("Conversation has no content to send.")

        start = time.time()
        try:
            stream = await self.client.responses.create(
                model=model or resolve_model(),
                instructions=system_prompt,
                input=inputs,
                stream=True,
            )
        except Exception as exc:
            logging.error(f"OpenAI Responses API error: {exc}")
            raise

        async for event in stream:
            event_type = getattr(event, "type", None)
            if event_type == "response.output_text.delta":
                delta = getattr(event, "delta", "")
                if delta:
                    yield delta
            elif event_type == "response.failed":
                error = getattr(getattr(event, "response", None), "error", None)
                raise RuntimeError(getattr(error, "message", None) or "Completion stream failed.")
            elif event_type == "error":
                detail = getattr(event, "message", None) or "Completion stream failed."
                raise RuntimeError(detail)

        logging.info(f"Chat completion stream latency: {time.time() - start:.3f}s")
