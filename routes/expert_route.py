"""FastAPI routes for expert personas."""

from typing import List, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from controllers.expert_controller import (
    create_expert,
    delete_expert,
    generate_expert_fields,
    list_experts,
    reorder_experts,
    seed_experts,
    update_expert,
)

router = APIRouter(prefix="/api/experts", tags=["experts"])


class ExpertPayload(BaseModel):
    slug: str = ""
    name: str = ""
    agent_name: str = ""
    description: Optional[str] = None
    system_prompt: str = ""
    suggestion_question: Optional[str] = None
    sort_order: Optional[int] = None


class DeletePayload(BaseModel):
    id: Optional[str] = None


class ReorderPayload(BaseModel):
    ids: List[str] = []


class GeneratePayload(BaseModel):
    name: str = ""
    agent_name: Optional[str] = None
    description: Optional[str] = None
    languageHint: Optional[str] = None


@router.get("")
async def list_experts_route(request: Request):
    try:
        return await list_experts(request)
    except HTTPException:
        raise
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc))


@router.post("/seed")
async def seed_experts_route(request: Request):
    try:
        return await seed_experts(request)
    except HTTPException:
        raise
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc))


@router.post("")
async def create_expert_route(request: Request, payload: ExpertPayload):
    try:
        return await create_expert(request, payload.model_dump())
    except HTTPException:
        raise
    except Exception as exc:
        raise HTTPException(status_code=500, detail=f"Failed to save expert. {exc}")


@router.put("/{expert_id}")
async def update_expert_route(request: Request, expert_id: str, payload: ExpertPayload):
    try:
        return await update_expert(request, expert_id, payload.model_dump())
    except HTTPException:
        raise
    except Exception as exc:
        raise HTTPException(status_code=500, detail=f"Failed to save expert. {exc}")


@router.post("/delete")
async def delete_expert_route(request: Request, payload: DeletePayload):
    try:
        return await delete_expert(request, payload.id)
    except HTTPException:
        raise
    except Exception as exc:
        raise HTTPException(status_code=500, detail=f"Failed to delete expert. {exc}")


@router.post("/reorder")
async def reorder_experts_route(request: Request, payload: ReorderPayload):
    try:
        return await reorder_experts(request, payload.ids)
    except HTTPException:
        raise
    except Exception as exc:
        raise HTTPException(status_code=500, detail=str(exc))


@router.post("/generate")
async def generate_expert_route(request: Request, payload: GeneratePayload):
    """Draft a system prompt and a suggestion question for an expert."""
    try:
        return await generate_expert_fields(request, payload.model_dump())
    except HTTPException:
        raise
    except Exception as exc:
        raise HTTPException(status_code=500, detail=f"Failed to generate with AI. {exc}")
