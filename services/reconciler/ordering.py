"""Pure list helpers for session recency and expert ordering."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from typing import List, Optional, Sequence, TypeVar

from models.expert_record import ExpertRecord
from models.session_models import SessionRecord

T = TypeVar("T")

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
	"""Parse an ISO-8601 timestamp; naive values are taken as UTC."""
	if not value:
		return None
	try:
		parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
	except ValueError:
		return None
	if parsed.tzinfo is None:
		parsed = parsed.replace(tzinfo=timezone.utc)
	return parsed


def later_timestamp(current: Optional[str], candidate: str) -> str:
	"""Return the later of the two timestamps so updated_at never moves back."""
	current_dt = parse_timestamp(current)
	if current_dt is None:
		return candidate
	candidate_dt = parse_timestamp(candidate)
	if candidate_dt is None or candidate_dt < current_dt:
		return current
	return candidate


def sort_sessions(sessions: Sequence[SessionRecord]) -> List[SessionRecord]:
	"""Most recently updated first."""
	return sorted(sessions, key=lambda s: parse_timestamp(s.updated_at) or _EPOCH, reverse=True)


def move_item(items: Sequence[T], from_index: int, to_index: int) -> List[T]:
	"""Return a copy of `items` with the element at `from_index` moved to `to_index`.

	Out-of-range indexes leave the order unchanged.
	"""
	result = list(items)
	if from_index == to_index:
		return result
	if not (0 <= from_index < len(result)) or not (0 <= to_index < len(result)):
		return result
	moved = result.pop(from_index)
	result.insert(to_index, moved)
	return result


def normalize_order(experts: Sequence[ExpertRecord]) -> List[ExpertRecord]:
	"""Renumber sort_order to match list position."""
	return [replace(expert, sort_order=index) for index, expert in enumerate(experts)]
