"""Session and message domain models shared by the API and the reconciler."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

NEW_CHAT_TITLE = "New chat"
TITLE_LIMIT = 60
PREVIEW_LIMIT = 500
MESSAGE_ROLES = ("user", "assistant", "system")


def utc_now_iso() -> str:
	"""Return the current UTC time as an ISO-8601 string with microseconds."""
	return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def coerce_parts(value: Any) -> List[Dict[str, Any]]:
	"""Return `value` when it is a list of part dicts, otherwise an empty list."""
	if not isinstance(value, list):
		return []
	return [part for part in value if isinstance(part, dict)]


def parts_text(parts: List[Dict[str, Any]], fallback: Optional[str] = None) -> str:
	"""Join the text parts with a blank line; use `fallback` when there are none."""
	texts = [part.get("text") or "" for part in parts if part.get("type") == "text"]
	if texts:
		return "\n\n".join(text for text in texts if text)
	return fallback or ""


def file_parts(parts: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
	return [part for part in parts if part.get("type") == "file"]


@dataclass
class SessionRecord:
	"""One persisted conversation thread tied to one expert."""

	id: str
	expert_id: str
	title: str = NEW_CHAT_TITLE
	last_message: Optional[str] = None
	created_at: Optional[str] = None
	updated_at: Optional[str] = None

	def to_dict(self) -> Dict[str, Any]:
		return {
			"id": self.id,
			"expert_id": self.expert_id,
			"title": self.title,
			"last_message": self.last_message,
			"created_at": self.created_at,
			"updated_at": self.updated_at,
		}

	@classmethod
	def from_dict(cls, data: Dict[str, Any]) -> "SessionRecord":
		return cls(
			id=str(data["id"]),
			expert_id=str(data["expert_id"]),
			title=data.get("title") or NEW_CHAT_TITLE,
			last_message=data.get("last_message"),
			created_at=data.get("created_at"),
			updated_at=data.get("updated_at"),
		)


@dataclass
class ChatMessage:
	"""A UI message: client-generated id, role and an ordered parts sequence."""

	id: str
	role: str
	parts: List[Dict[str, Any]] = field(default_factory=list)
	created_at: Optional[str] = None

	@property
	def text(self) -> str:
		return parts_text(self.parts)

	def with_parts(self, parts: List[Dict[str, Any]]) -> "ChatMessage":
		return replace(self, parts=list(parts))

	def to_dict(self) -> Dict[str, Any]:
		data: Dict[str, Any] = {"id": self.id, "role": self.role, "parts": list(self.parts)}
		if self.created_at:
			data["created_at"] = self.created_at
		return data

	@classmethod
	def from_dict(cls, data: Dict[str, Any]) -> "ChatMessage":
		parts = coerce_parts(data.get("parts"))
		if not parts and isinstance(data.get("content"), str) and data["content"]:
			parts = [{"type": "text", "text": data["content"]}]
		return cls(
			id=str(data.get("id") or ""),
			role=str(data.get("role") or "user"),
			parts=parts,
			created_at=data.get("created_at"),
		)


def submission_preview(text: str, filenames: List[str]) -> str:
	"""Preview for a submitted message: its text, else a summary of the attachments."""
	text = (text or "").strip()
	if text:
		return text[:PREVIEW_LIMIT]
	if not filenames:
		return ""
	if len(filenames) == 1:
		return f"Attachment: {filenames[0]}"[:PREVIEW_LIMIT]
	return f"Attachments: {filenames[0]} +{len(filenames) - 1}"[:PREVIEW_LIMIT]


def session_patch_for(messages: List[ChatMessage], current_title: Optional[str]) -> Dict[str, str]:
	"""Return the title/preview update implied by a synced batch.

	The preview follows the last message of the batch. The title is only
	derived (from the first user message) while the session still carries
	the placeholder title.
	"""
	patch: Dict[str, str] = {}
	if messages:
		last_text = messages[-1].text.strip()[:PREVIEW_LIMIT]
		if last_text:
			patch["last_message"] = last_text
	if current_title in (None, NEW_CHAT_TITLE):
		first_user = next((m for m in messages if m.role == "user"), None)
		title = first_user.text.strip()[:TITLE_LIMIT] if first_user else ""
		if title:
			patch["title"] = title
	return patch
