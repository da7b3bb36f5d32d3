"""Static persona registry: preset system prompts and the default expert seeds."""

from __future__ import annotations

from typing import Dict, List, Optional

from models.expert_record import ExpertRecord

DEFAULT_SYSTEM_PROMPT = (
	"You are a premium luggage brand assistant. "
	"Be concise, confident, and proactive with tasteful product suggestions."
)

SYSTEM_PRESETS: Dict[str, str] = {
	"travel-concierge": (
		"You are a travel concierge. Deliver premium trip guidance, thoughtful itineraries, "
		"and upscale service tone."
	),
	"product-specialist": (
		"You are a product specialist. Be precise, technical when needed, and compare options clearly."
	),
	"brand-voice": (
		"You are the brand voice. Keep responses refined, poetic but practical, "
		"and aligned with luxury positioning."
	),
	"support-agent": (
		"You are a support agent. Be calm, empathetic, and focused on resolution steps."
	),
}

_SEED_ROWS = (
	(
		"travel-concierge",
		"Travel Concierge",
		"Kate",
		"Curated travel planning and premium trip advice.",
		"Can you help me plan a trip - what suitcase sizes should I choose for my destination and trip length?",
	),
	(
		"product-specialist",
		"Product Specialist",
		"Noah",
		"Deep product knowledge and feature comparisons.",
		"Can you compare durable vs lightweight luggage - what are the tradeoffs and your recommendation?",
	),
	(
		"brand-voice",
		"Brand Voice",
		"Iris",
		"Refined tone, storytelling, and brand consistency.",
		"Can you rewrite my message in a refined premium tone? Here's my draft: ",
	),
	(
		"support-agent",
		"Support Agent",
		"Alex",
		"Calm troubleshooting and resolution-focused help.",
		"Can you troubleshoot this step-by-step? My suitcase (handle/wheels/lock) is not working properly.",
	),
)


def expert_seeds() -> List[ExpertRecord]:
	"""Return fresh ExpertRecord copies of the default personas."""
	return [
		ExpertRecord(
			id=None,
			slug=slug,
			name=name,
			agent_name=agent_name,
			description=description,
			system_prompt=SYSTEM_PRESETS[slug],
			suggestion_question=question,
			sort_order=index,
		)
		for index, (slug, name, agent_name, description, question) in enumerate(_SEED_ROWS)
	]


def resolve_system_prompt(preset_id: Optional[str]) -> str:
	"""Return the preset prompt for `preset_id`, or the default prompt."""
	if preset_id and preset_id in SYSTEM_PRESETS:
		return SYSTEM_PRESETS[preset_id]
	return DEFAULT_SYSTEM_PROMPT
