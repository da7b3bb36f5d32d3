"""Client-side reconciliation of the session list and the active conversation.

ChatReconciler keeps a local view of experts, sessions and the active
session's messages, applies user actions optimistically and persists message
changes through a debounced background sync. All remote work goes through the
injected gateway (see gateway.HttpChatGateway for the HTTP implementation).

Everything runs on one event loop; state is only mutated from coroutines on
that loop, so no locking is needed.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from contextlib import aclosing
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional, Sequence, Set

from models.attachment import AttachmentFile
from models.expert_record import ExpertRecord
from models.session_models import (
	NEW_CHAT_TITLE,
	PREVIEW_LIMIT,
	TITLE_LIMIT,
	ChatMessage,
	SessionRecord,
	session_patch_for,
	submission_preview,
	utc_now_iso,
)
from services.reconciler.ordering import later_timestamp, move_item, normalize_order, sort_sessions
from services.reconciler.sync_state import Idle, InFlight, Pending, Settled, SyncState, transition
from utils.media_validation import ensure_within_limit

logger = logging.getLogger(__name__)

SYNC_DEBOUNCE_SECONDS = 0.25
REMOVAL_DELAY_SECONDS = 0.18

READY = "ready"
SUBMITTED = "submitted"
STREAMING = "streaming"
ERROR = "error"


def _new_message_id() -> str:
	return uuid.uuid4().hex


class ChatReconciler:
	def __init__(
		self,
		gateway: Any,
		*,
		debounce_seconds: float = SYNC_DEBOUNCE_SECONDS,
		removal_delay_seconds: float = REMOVAL_DELAY_SECONDS,
		clock: Callable[[], str] = utc_now_iso,
		id_factory: Callable[[], str] = _new_message_id,
		preset_id: Optional[str] = None,
	) -> None:
		self.gateway = gateway
		self.debounce_seconds = debounce_seconds
		self.removal_delay_seconds = removal_delay_seconds
		self.clock = clock
		self.id_factory = id_factory
		self.preset_id = preset_id

		self.experts: List[ExpertRecord] = []
		self.sessions: List[SessionRecord] = []
		self.active_session_id: Optional[str] = None
		self.active_expert_id: Optional[str] = None
		self.messages: List[ChatMessage] = []
		self.persisted_ids: Set[str] = set()

		self.status = READY
		self.error: Optional[str] = None
		self.input = ""
		self.pending_files: List[AttachmentFile] = []
		self.deleting_ids: Set[str] = set()
		self.removing_ids: Set[str] = set()
		self.sync_states: Dict[str, SyncState] = {}

		# Parts of each message as last handed to the gateway.
		self._sent_parts: Dict[str, List[Dict[str, Any]]] = {}
		self._sync_task: Optional[asyncio.Task] = None
		self._sync_session_id: Optional[str] = None
		self._removal_tasks: Set[asyncio.Task] = set()

	async def __aenter__(self) -> "ChatReconciler":
		return self

	async def __aexit__(self, *exc_info) -> None:
		await self.close()

	@property
	def active_session(self) -> Optional[SessionRecord]:
		return next((s for s in self.sessions if s.id == self.active_session_id), None)

	def sync_state(self, session_id: str) -> SyncState:
		return self.sync_states.get(session_id, Idle())

	# Loading

	async def load(self) -> None:
		"""Fetch experts and sessions, then open the most recent session.

		Seeds the default experts when none exist and starts a session with
		the first expert when there are no sessions yet.
		"""
		try:
			experts = await self.gateway.list_experts()
			if not experts:
				experts = await self.gateway.seed_experts()
			sessions = await self.gateway.list_sessions()
		except Exception as exc:
			self._fail(f"Failed to load chats. {exc}")
			return

		self.experts = list(experts)
		self.sessions = sort_sessions(sessions)
		if self.sessions:
			await self.select_session(self.sessions[0])
		elif self.experts:
			await self.create_session(self.experts[0].id)

	# Sessions

	async def select_session(self, session: SessionRecord) -> None:
		self._cancel_sync(release=False)
		self.active_session_id = session.id
		self.active_expert_id = session.expert_id
		self.messages = []
		self.persisted_ids = set()
		self._sent_parts = {}
		self.input = ""
		self.pending_files = []

		try:
			messages = await self.gateway.list_messages(session.id)
		except Exception as exc:
			logger.error("Failed to load messages for session %s: %s", session.id, exc)
			messages = []

		# A later selection won the race.
		if self.active_session_id != session.id:
			return
		self.messages = list(messages)
		self.persisted_ids = {m.id for m in self.messages}
		self._sent_parts = {m.id: list(m.parts) for m in self.messages}

	async def create_session(self, expert_id: str) -> Optional[SessionRecord]:
		"""Insert one new session for `expert_id` and make it active."""
		try:
			session = await self.gateway.create_session(expert_id)
		except Exception as exc:
			self._fail(f"Failed to create session. {exc}")
			return None

		self._cancel_sync(release=False)
		self.sessions = [session] + [s for s in self.sessions if s.id != session.id]
		self.active_session_id = session.id
		self.active_expert_id = session.expert_id
		self.messages = []
		self.persisted_ids = set()
		self._sent_parts = {}
		self.input = ""
		self.pending_files = []
		return session

	async def delete_session(self, session: SessionRecord) -> bool:
		"""Delete `session` remotely; drop it from the list after the removal delay.

		Returns False when the session is already being deleted or the delete failed.
		"""
		if session.id in self.deleting_ids:
			return False
		self.deleting_ids.add(session.id)

		try:
			await self.gateway.delete_session(session.id)
		except Exception as exc:
			self.deleting_ids.discard(session.id)
			self._fail(f"Failed to delete session. {exc}")
			return False

		self.removing_ids.add(session.id)

		if self.active_session_id == session.id:
			remaining = [
				s for s in sort_sessions(self.sessions)
				if s.id != session.id and s.id not in self.removing_ids
			]
			if remaining:
				await self.select_session(remaining[0])
			else:
				self._clear_active()
		self.sync_states.pop(session.id, None)

		task = asyncio.create_task(self._remove_after_delay(session.id))
		self._removal_tasks.add(task)
		task.add_done_callback(self._removal_tasks.discard)
		return True

	async def _remove_after_delay(self, session_id: str) -> None:
		await asyncio.sleep(self.removal_delay_seconds)
		self.sessions = [s for s in self.sessions if s.id != session_id]
		self.removing_ids.discard(session_id)
		self.deleting_ids.discard(session_id)

	async def flush_removals(self) -> None:
		"""Wait for every scheduled list removal to run."""
		if self._removal_tasks:
			await asyncio.gather(*list(self._removal_tasks), return_exceptions=True)

	def _clear_active(self) -> None:
		self._cancel_sync(release=False)
		self.active_session_id = None
		self.active_expert_id = None
		self.messages = []
		self.persisted_ids = set()
		self._sent_parts = {}
		self.input = ""
		self.pending_files = []

	# Submitting

	async def submit_message(
		self,
		text: Optional[str] = None,
		files: Optional[Sequence[AttachmentFile]] = None,
	) -> Optional[ChatMessage]:
		"""Send a user message and stream the assistant reply into `messages`.

		`text` and `files` default to the pending `input` and `pending_files`.
		Returns the user message, or None when nothing was sent.
		"""
		text = (self.input if text is None else text).strip()
		files = list(self.pending_files if files is None else files)
		session_id = self.active_session_id
		if not text and not files:
			return None
		if self.status not in (READY, ERROR) or session_id is None:
			return None

		self.error = None
		self.status = SUBMITTED
		self.input = ""
		self.pending_files = []
		preview = submission_preview(text, [f.filename for f in files])
		self._touch_session(session_id, preview=preview, title=preview)

		try:
			attachments = await self._upload(session_id, files)
		except Exception as exc:
			self._fail(f"Failed to upload attachments. {exc}")
			self.status = ERROR
			return None

		if self.active_session_id != session_id:
			logger.info("Session %s closed during upload; dropping the message", session_id)
			self.status = READY
			return None

		parts: List[Dict[str, Any]] = []
		if text:
			parts.append({"type": "text", "text": text})
		parts.extend(attachments)
		user_message = ChatMessage(id=self.id_factory(), role="user", parts=parts, created_at=self.clock())
		self._set_messages(self.messages + [user_message])

		try:
			await self._stream_reply(session_id)
		except Exception as exc:
			self._fail(f"Failed to get a reply. {exc}")
			self.status = ERROR
			return user_message

		self.status = READY
		return user_message

	async def _upload(self, session_id: str, files: List[AttachmentFile]) -> List[Dict[str, Any]]:
		if not files:
			return []
		ensure_within_limit(files)
		results = await asyncio.gather(
			*(self.gateway.upload_attachments(session_id, [item]) for item in files)
		)
		return [part for result in results for part in result]

	async def _stream_reply(self, session_id: str) -> None:
		history = list(self.messages)
		reply = ChatMessage(id=self.id_factory(), role="assistant", parts=[], created_at=self.clock())
		text = ""
		stream = self.gateway.stream_chat(
			history,
			expert_id=self.active_expert_id,
			preset_id=self.preset_id,
			session_id=session_id,
		)
		async with aclosing(stream):
			async for event in stream:
				if self.active_session_id != session_id:
					logger.info("Session %s closed mid-reply; dropping the rest of the stream", session_id)
					break
				kind = event.get("type")
				if kind == "start":
					self.status = STREAMING
					self._set_messages(self.messages + [reply])
				elif kind == "text-delta":
					if self.status != STREAMING:
						self.status = STREAMING
						self._set_messages(self.messages + [reply])
					text += event.get("delta") or ""
					reply = reply.with_parts([{"type": "text", "text": text}])
					self._set_messages([reply if m.id == reply.id else m for m in self.messages])
				elif kind == "finish":
					break

		if self.active_session_id == session_id and text.strip():
			self._touch_session(session_id, preview=text.strip())

	def _touch_session(self, session_id: str, *, preview: str, title: Optional[str] = None) -> None:
		"""Patch a session's preview (and placeholder title), bump updated_at and re-sort."""
		now = self.clock()
		patched = []
		for session in self.sessions:
			if session.id == session_id:
				changes: Dict[str, Any] = {"updated_at": later_timestamp(session.updated_at, now)}
				if preview:
					changes["last_message"] = preview[:PREVIEW_LIMIT]
				if title and session.title == NEW_CHAT_TITLE:
					changes["title"] = title[:TITLE_LIMIT]
				session = replace(session, **changes)
			patched.append(session)
		self.sessions = sort_sessions(patched)

	def _set_messages(self, messages: List[ChatMessage]) -> None:
		self.messages = messages
		self.sync_pending_messages()

	# Sync

	def pending_batch(self) -> List[ChatMessage]:
		"""Messages not yet persisted, plus the latest assistant message if it changed since it was sent."""
		latest_assistant = next((m for m in reversed(self.messages) if m.role == "assistant"), None)
		batch = []
		for message in self.messages:
			if not message.parts:
				continue
			if message.id not in self.persisted_ids:
				batch.append(message)
			elif message is latest_assistant and self._sent_parts.get(message.id) != message.parts:
				batch.append(message)
		return batch

	def sync_pending_messages(self) -> None:
		"""Arm (or re-arm) the debounced sync for the active session.

		A superseding call cancels the armed timer or the in-flight dispatch;
		ids that the cancelled dispatch had marked are released so the next
		dispatch carries them again.
		"""
		session_id = self.active_session_id
		if session_id is None:
			return
		self._cancel_sync(release=True)
		loop = asyncio.get_running_loop()
		self._set_sync_state(session_id, Pending(armed_at=loop.time()))
		self._sync_session_id = session_id
		self._sync_task = loop.create_task(self._run_sync(session_id))

	async def flush_sync(self) -> None:
		"""Wait for the currently armed or in-flight sync to settle."""
		task = self._sync_task
		if task is not None and not task.done():
			await asyncio.gather(task, return_exceptions=True)

	async def _run_sync(self, session_id: str) -> None:
		await asyncio.sleep(self.debounce_seconds)

		batch = self.pending_batch()
		if not batch:
			self._set_sync_state(session_id, Idle())
			return

		ids = tuple(m.id for m in batch)
		newly_marked = frozenset(i for i in ids if i not in self.persisted_ids)
		self.persisted_ids.update(newly_marked)
		for message in batch:
			self._sent_parts[message.id] = list(message.parts)
		self._set_sync_state(session_id, InFlight(message_ids=ids, newly_marked=newly_marked))

		ok = True
		try:
			await self.gateway.sync_messages(session_id, batch)
		except Exception as exc:
			ok = False
			logger.warning("Failed to sync %d message(s) for session %s: %s", len(batch), session_id, exc)

		self._set_sync_state(session_id, Settled(message_ids=ids, ok=ok))
		self._patch_after_sync(session_id, batch)

	def _patch_after_sync(self, session_id: str, batch: List[ChatMessage]) -> None:
		now = self.clock()
		patched = []
		for session in self.sessions:
			if session.id == session_id:
				changes: Dict[str, Any] = session_patch_for(batch, session.title)
				changes["updated_at"] = later_timestamp(session.updated_at, now)
				session = replace(session, **changes)
			patched.append(session)
		self.sessions = sort_sessions(patched)

	def _cancel_sync(self, *, release: bool) -> None:
		task, session_id = self._sync_task, self._sync_session_id
		self._sync_task = None
		self._sync_session_id = None
		if task is None or task.done() or session_id is None:
			return
		state = self.sync_state(session_id)
		if isinstance(state, InFlight) and release:
			for message_id in state.newly_marked:
				self.persisted_ids.discard(message_id)
			for message_id in state.message_ids:
				self._sent_parts.pop(message_id, None)
		if isinstance(state, (Pending, InFlight)):
			self._set_sync_state(session_id, Idle())
		task.cancel()

	def _set_sync_state(self, session_id: str, new: SyncState) -> None:
		self.sync_states[session_id] = transition(self.sync_state(session_id), new)

	# Experts

	async def reorder_experts(self, from_index: int, to_index: int) -> bool:
		"""Move one expert and persist the new order; the local order is restored on failure."""
		previous = list(self.experts)
		reordered = normalize_order(move_item(previous, from_index, to_index))
		if [e.id for e in reordered] == [e.id for e in previous]:
			return False
		self.experts = reordered
		try:
			await self.gateway.reorder_experts([e.id for e in reordered])
		except Exception as exc:
			self.experts = previous
			self._fail(f"Failed to save expert order. {exc}")
			return False
		return True

	# Lifecycle

	async def close(self) -> None:
		task = self._sync_task
		self._cancel_sync(release=False)
		pending = [t for t in [task, *self._removal_tasks] if t is not None and not t.done()]
		for item in pending:
			item.cancel()
		if pending:
			await asyncio.gather(*pending, return_exceptions=True)
		aclose = getattr(self.gateway, "aclose", None)
		if aclose is not None:
			await aclose()

	def _fail(self, message: str) -> None:
		logger.error(message)
		self.error = message
