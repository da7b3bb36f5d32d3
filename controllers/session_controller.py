"""Session lifecycle helpers for the chat sidebar."""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import HTTPException, Request

from dal.expert_dal import ExpertDAL
from dal.session_dal import SessionDAL


async def list_sessions(request: Request, limit: int = 50) -> Dict[str, Any]:
	"""Return the most recently updated sessions."""
	sessions = await SessionDAL(request.app.state.db_initializer).list_sessions(limit=limit)
	return {"sessions": [s.to_dict() for s in sessions]}


async def create_session(request: Request, expert_id: Optional[str]) -> Dict[str, Any]:
	"""Create a placeholder-titled session for an expert."""
	if not expert_id:
		raise HTTPException(status_code=400, detail="Missing expertId.")
	db_initializer = request.app.state.db_initializer
	expert = await ExpertDAL(db_initializer).get_expert(expert_id)
	if expert is None:
		raise HTTPException(status_code=404, detail=f"Expert {expert_id} not found")
	session = await SessionDAL(db_initializer).create_session(expert_id)
	return {"session": session.to_dict()}


async def delete_session(request: Request, session_id: Optional[str]) -> Dict[str, Any]:
	"""Delete a session; messages are removed by the cascade."""
	if not session_id:
		raise HTTPException(status_code=400, detail="Missing sessionId.")
	deleted = await SessionDAL(request.app.state.db_initializer).delete_session(session_id)
	return {"ok": True, "deleted": deleted}
