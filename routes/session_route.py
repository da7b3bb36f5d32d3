"""FastAPI routes for chat sessions."""

from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from controllers.session_controller import create_session, delete_session, list_sessions

router = APIRouter(prefix="/api/sessions")


class CreatePayload(BaseModel):
	expertId: Optional[str] = None


class DeletePayload(BaseModel):
	sessionId: Optional[str] = None


@router.get("")
async def list_sessions_route(request: Request, limit: int = 50):
	try:
		return await list_sessions(request, limit)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.post("")
async def create_session_route(request: Request, payload: CreatePayload):
	try:
		return await create_session(request, payload.expertId)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.post("/delete")
async def delete_session_route(request: Request, payload: DeletePayload):
	try:
		return await delete_session(request, payload.sessionId)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=f"Failed to delete session. {exc}")
