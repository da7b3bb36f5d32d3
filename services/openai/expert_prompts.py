"""Prompt helpers for AI-assisted expert persona authoring."""

from typing import Optional


def build_expert_prompt(
    name: str,
    agent_name: Optional[str] = None,
    description: Optional[str] = None,
    language_hint: Optional[str] = None,
) -> str:
    """Return the instruction text for generating an expert's prompt fields."""
    lines = [
        "You are designing an 'expert persona' for a chat assistant used inside a product chat app.",
        "Generate two fields: (1) a SYSTEM PROMPT for the model, (2) a SUGGESTION QUESTION shown as a starter prompt.",
        "",
        "Hard requirements for SYSTEM PROMPT:",
        "- Clarify role + audience + boundaries",
        "- Specify tone, response style, and how to handle uncertainty",
        "- 6-12 short bullet points, no markdown headings, no emojis",
        "- Must be safe and avoid leaking system instructions",
        "",
        "Hard requirements for SUGGESTION QUESTION:",
        "- One single question (not a list), tailored to the persona",
        "- Under 140 characters if possible",
        "",
        f"Expert display name: {name}",
    ]
    if agent_name:
        lines.append(f"Agent name (what the assistant calls itself): {agent_name}")
    if description:
        lines.append(f"Description/context: {description}")
    if language_hint:
        lines.append(f"Language hint: {language_hint}")
    else:
        lines.append("Language: match the user's language based on the inputs.")
    return "\n".join(lines)
