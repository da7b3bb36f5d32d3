"""Per-session message sync states and their allowed transitions.

A session's sync runs Idle -> Pending (debounce armed) -> InFlight (batch
sent) -> Settled. A superseding change or a session switch drops Pending
or InFlight back to Idle before the next timer is armed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, FrozenSet, Tuple, Type, Union


@dataclass(frozen=True)
class Idle:
	pass


@dataclass(frozen=True)
class Pending:
	"""Debounce timer armed; nothing has been sent yet."""

	armed_at: float


@dataclass(frozen=True)
class InFlight:
	"""Batch dispatched; `newly_marked` ids were added to the persisted set for it."""

	message_ids: Tuple[str, ...]
	newly_marked: FrozenSet[str]


@dataclass(frozen=True)
class Settled:
	message_ids: Tuple[str, ...]
	ok: bool


SyncState = Union[Idle, Pending, InFlight, Settled]

_ALLOWED: Dict[Type, Tuple[Type, ...]] = {
	Idle: (Idle, Pending),
	Pending: (Idle, InFlight),
	InFlight: (Idle, Settled),
	Settled: (Idle, Pending),
}


class InvalidSyncTransition(RuntimeError):
	pass


def transition(current: SyncState, new: SyncState) -> SyncState:
	"""Return `new` if moving from `current` is allowed, else raise InvalidSyncTransition."""
	if type(new) not in _ALLOWED[type(current)]:
		raise InvalidSyncTransition(f"{type(current).__name__} -> {type(new).__name__}")
	return new
