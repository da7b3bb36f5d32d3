"""Schema definition for the expert persona field generation tool."""

from typing import Any, Dict

FUNCTION_NAME = "propose_expert_fields"

FUNCTION_DEFINITION: Dict[str, Any] = {
    "type": "function",
    "name": FUNCTION_NAME,
    "description": "Return the system prompt and starter question for an expert persona.",
    "parameters": {
        "type": "object",
        "properties": {
            "system_prompt": {
                "type": "string",
                "description": "Behavior contract for the assistant, 6-12 short bullet points.",
            },
            "suggestion_question": {
                "type": "string",
                "description": "One starter question tailored to the persona.",
            },
        },
        "required": ["system_prompt", "suggestion_question"],
        "additionalProperties": False,
    },
    "strict": True,
}
