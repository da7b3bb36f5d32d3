"""HTTP client for the chat service, used by the reconciler.

Every call maps a non-2xx response or a transport error to GatewayError so
callers deal with one failure type.
"""

from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

import httpx

from models.attachment import AttachmentFile
from models.expert_record import ExpertRecord
from models.session_models import ChatMessage, SessionRecord

logger = logging.getLogger(__name__)


class GatewayError(RuntimeError):
	def __init__(self, message: str, status_code: Optional[int] = None) -> None:
		super().__init__(message)
		self.status_code = status_code


class HttpChatGateway:
	def __init__(
		self,
		base_url: str,
		*,
		timeout: float = 30.0,
		transport: Optional[httpx.AsyncBaseTransport] = None,
	) -> None:
		self.base_url = base_url.rstrip("/")
		self.timeout = timeout
		self._transport = transport
		self._client: Optional[httpx.AsyncClient] = None

	async def connect(self) -> "HttpChatGateway":
		if self._client is None:
			self._client = httpx.AsyncClient(
				base_url=self.base_url,
				timeout=self.timeout,
				transport=self._transport,
			)
		return self

	async def aclose(self) -> None:
		if self._client is not None:
			await self._client.aclose()
			self._client = None

	async def __aenter__(self) -> "HttpChatGateway":
		return await self.connect()

	async def __aexit__(self, *exc_info) -> None:
		await self.aclose()

	@property
	def client(self) -> httpx.AsyncClient:
		if self._client is None:
			raise GatewayError("Gateway is not connected")
		return self._client

	async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
		try:
			resp = await self.client.request(method, path, **kwargs)
		except httpx.RequestError as exc:
			raise GatewayError(f"{method} {path} failed: {exc}") from exc
		if resp.status_code >= 400:
			raise GatewayError(_error_detail(resp), status_code=resp.status_code)
		return resp.json()

	# Experts

	async def list_experts(self) -> List[ExpertRecord]:
		data = await self._request("GET", "/api/experts")
		return [ExpertRecord.from_dict(row) for row in data.get("experts", [])]

	async def seed_experts(self) -> List[ExpertRecord]:
		data = await self._request("POST", "/api/experts/seed")
		return [ExpertRecord.from_dict(row) for row in data.get("experts", [])]

	async def reorder_experts(self, ids: Sequence[str]) -> List[ExpertRecord]:
		data = await self._request("POST", "/api/experts/reorder", json={"ids": list(ids)})
		return [ExpertRecord.from_dict(row) for row in data.get("experts", [])]

	# Sessions

	async def list_sessions(self) -> List[SessionRecord]:
		data = await self._request("GET", "/api/sessions")
		return [SessionRecord.from_dict(row) for row in data.get("sessions", [])]

	async def create_session(self, expert_id: str) -> SessionRecord:
		data = await self._request("POST", "/api/sessions", json={"expertId": expert_id})
		return SessionRecord.from_dict(data["session"])

	async def delete_session(self, session_id: str) -> None:
		await self._request("POST", "/api/sessions/delete", json={"sessionId": session_id})

	# Messages

	async def list_messages(self, session_id: str) -> List[ChatMessage]:
		data = await self._request("GET", f"/api/sessions/{session_id}/messages")
		return [ChatMessage.from_dict(row) for row in data.get("messages", [])]

	async def sync_messages(self, session_id: str, messages: Sequence[ChatMessage]) -> None:
		payload = {"sessionId": session_id, "messages": [m.to_dict() for m in messages]}
		await self._request("POST", "/api/messages/sync", json=payload)

	# Attachments

	async def upload_attachments(self, session_id: str, files: Sequence[AttachmentFile]) -> List[Dict[str, Any]]:
		multipart = [("files", (f.filename, f.data, f.media_type)) for f in files]
		data = await self._request(
			"POST",
			"/api/attachments/upload",
			data={"sessionId": session_id},
			files=multipart,
		)
		return list(data.get("files", []))

	# Completion

	async def stream_chat(
		self,
		messages: Sequence[ChatMessage],
		*,
		expert_id: Optional[str] = None,
		preset_id: Optional[str] = None,
		session_id: Optional[str] = None,
	) -> AsyncIterator[Dict[str, Any]]:
		"""Yield the decoded SSE events of one assistant reply.

		An in-band `error` event is raised as GatewayError.
		"""
		payload = {
			"messages": [m.to_dict() for m in messages],
			"expertId": expert_id,
			"presetId": preset_id,
			"sessionId": session_id,
		}
		timeout = httpx.Timeout(self.timeout, read=None)
		try:
			async with self.client.stream("POST", "/api/chat", json=payload, timeout=timeout) as resp:
				if resp.status_code >= 400:
					await resp.aread()
					raise GatewayError(_error_detail(resp), status_code=resp.status_code)
				async for line in resp.aiter_lines():
					if not line.startswith("data:"):
						continue
					raw = line[len("data:"):].strip()
					if not raw:
						continue
					try:
						event = json.loads(raw)
					except json.JSONDecodeError:
						logger.warning("Skipping malformed stream event: %s", raw[:200])
						continue
					if event.get("type") == "error":
						raise GatewayError(event.get("errorText") or "Completion failed")
					yield event
		except httpx.RequestError as exc:
			raise GatewayError(f"Chat stream failed: {exc}") from exc


def _error_detail(resp: httpx.Response) -> str:
	try:
		detail = resp.json().get("detail")
	except ValueError:
		detail = None
	return str(detail or f"HTTP {resp.status_code}")
