"""Generate expert persona fields with a forced function call."""

import logging
import time
from typing import Any, Dict, Optional

from openai import AsyncOpenAI

from services.openai.chat_completion import resolve_model
from services.openai.expert_prompts import build_expert_prompt
from services.openai.expert_schema import FUNCTION_DEFINITION, FUNCTION_NAME
from services.openai.response_parser import extract_usage, parse_function_call


class ExpertFieldGenerator:
    """Draft a system prompt and a suggestion question for an expert persona."""

    def __init__(self, client: AsyncOpenAI) -> None:
        if client is None:
            raise ValueError("OpenAI client must be provided.")
        self.client = client

    async def generate(
        self,
        name: str,
        *,
        agent_name: Optional[str] = None,
        description: Optional[str] = None,
        language_hint: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Return `system_prompt`, `suggestion_question` and token usage.

        Raises:
            ValueError: If the name is empty or the model returns empty fields.
        """
        if not name or not name.strip():
            raise ValueError("Missing expert name.")

        start = time.time()
        prompt = build_expert_prompt(name.strip(), agent_name, description, language_hint)
        try:
            response = await self.client.responses.create(
                model=resolve_model(),
                input=[
                    {"type": "message", "role": "user", "content": [{"type": "input_text", "text": prompt}]},
                ],
                tools=[FUNCTION_DEFINITION],
                tool_choice={"type": "function", "name": FUNCTION_NAME},
            )
        except Exception as exc:
            logging.error("Error during OpenAI Responses API call: %s", exc)
            raise

        args = parse_function_call(response, tool_name=FUNCTION_NAME)
        system_prompt = str(args.get("system_prompt") or "").strip()
        suggestion_question = str(args.get("suggestion_question") or "").strip()
        if not system_prompt or not suggestion_question:
            logging.error("Incomplete expert fields received from OpenAI: %r", args)
            raise ValueError("Invalid AI response.")

        logging.info(f"Expert field generation latency: {time.time() - start:.3f}s")
        return {
            "system_prompt": system_prompt,
            "suggestion_question": suggestion_question,
            "usage": extract_usage(response),
        }
