"""Expert persona CRUD, ordering and AI-assisted field generation."""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional

import aiosqlite
from fastapi import HTTPException, Request

from dal.expert_dal import ExpertDAL
from models.expert_record import ExpertRecord
from services.openai.expert_generator import ExpertFieldGenerator
from services.personas import expert_seeds

SLUG_LIMIT = 48


def slugify(value: str) -> str:
    """Lowercase, strip quotes, collapse non-alphanumerics to dashes, cap at 48 chars."""
    slug = (value or "").strip().lower()
    slug = re.sub(r"['\"]", "", slug)
    slug = re.sub(r"[^a-z0-9]+", "-", slug)
    slug = slug.strip("-")
    return slug[:SLUG_LIMIT]


def build_expert_record(data: Dict[str, Any], sort_order: int, expert_id: Optional[str] = None) -> ExpertRecord:
    """Trim a draft into an ExpertRecord, raising 400 on missing required fields."""
    name = (data.get("name") or "").strip()
    agent_name = (data.get("agent_name") or "").strip()
    system_prompt = (data.get("system_prompt") or "").strip()
    if not name or not agent_name or not system_prompt:
        raise HTTPException(status_code=400, detail="Name / Agent name / System prompt are required.")

    slug = ((data.get("slug") or "").strip() or slugify(name))[:SLUG_LIMIT]
    if not slug:
        raise HTTPException(status_code=400, detail="Slug could not be derived from the name.")

    return ExpertRecord(
        id=expert_id,
        slug=slug,
        name=name,
        agent_name=agent_name,
        description=(data.get("description") or "").strip() or None,
        system_prompt=system_prompt,
        suggestion_question=(data.get("suggestion_question") or "").strip() or None,
        sort_order=sort_order,
    )


async def list_experts(request: Request) -> Dict[str, Any]:
    experts = await ExpertDAL(request.app.state.db_initializer).list_experts()
    return {"experts": [e.to_dict() for e in experts]}


async def seed_experts(request: Request) -> Dict[str, Any]:
    """Insert the default personas (upsert on slug) and return the list."""
    dal = ExpertDAL(request.app.state.db_initializer)
    await dal.upsert_by_slug(expert_seeds())
    experts = await dal.list_experts()
    return {"experts": [e.to_dict() for e in experts]}


async def create_expert(request: Request, data: Dict[str, Any]) -> Dict[str, Any]:
    """Create an expert at the end of the list.

    Raises:
        HTTPException(400) on missing fields, HTTPException(409) on a duplicate slug.
    """
    dal = ExpertDAL(request.app.state.db_initializer)
    record = build_expert_record(data, sort_order=await dal.max_sort_order() + 1)
    try:
        created = await dal.create_expert(record)
    except aiosqlite.IntegrityError as exc:
        raise HTTPException(status_code=409, detail=f"Slug '{record.slug}' is already in use.") from exc
    return {"expert": created.to_dict()}


async def update_expert(request: Request, expert_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
    """Overwrite an expert's editable fields, keeping its position unless one is given."""
    dal = ExpertDAL(request.app.state.db_initializer)
    existing = await dal.get_expert(expert_id)
    if existing is None:
        raise HTTPException(status_code=404, detail=f"Expert {expert_id} not found")

    sort_order = data.get("sort_order")
    record = build_expert_record(
        data,
        sort_order=int(sort_order) if isinstance(sort_order, int) else existing.sort_order,
        expert_id=expert_id,
    )
    try:
        await dal.update_expert(expert_id, record)
    except aiosqlite.IntegrityError as exc:
        raise HTTPException(status_code=409, detail=f"Slug '{record.slug}' is already in use.") from exc

    record.created_at = existing.created_at
    return {"expert": record.to_dict()}


async def delete_expert(request: Request, expert_id: Optional[str]) -> Dict[str, Any]:
    """Delete an expert. Experts still referenced by sessions cannot be removed."""
    if not expert_id:
        raise HTTPException(status_code=400, detail="Missing expert id.")
    try:
        deleted = await ExpertDAL(request.app.state.db_initializer).delete_expert(expert_id)
    except aiosqlite.IntegrityError as exc:
        raise HTTPException(
            status_code=400, detail="Expert is still referenced by chat sessions."
        ) from exc
    return {"ok": True, "deleted": deleted}


async def reorder_experts(request: Request, ids: List[str]) -> Dict[str, Any]:
    """Assign sort_order by position in `ids`."""
    if len(set(ids)) != len(ids):
        raise HTTPException(status_code=400, detail="Duplicate expert ids in ordering.")
    dal = ExpertDAL(request.app.state.db_initializer)
    await dal.update_sort_orders((expert_id, index) for index, expert_id in enumerate(ids))
    experts = await dal.list_experts()
    return {"experts": [e.to_dict() for e in experts]}


async def generate_expert_fields(request: Request, data: Dict[str, Any]) -> Dict[str, Any]:
    """Ask the model for a system prompt and a suggestion question."""
    name = (data.get("name") or "").strip()
    if not name:
        raise HTTPException(status_code=400, detail="Missing expert name.")

    generator = ExpertFieldGenerator(request.app.state.openai_client)
    try:
        result = await generator.generate(
            name,
            agent_name=(data.get("agent_name") or "").strip() or None,
            description=(data.get("description") or "").strip() or None,
            language_hint=(data.get("languageHint") or "").strip() or None,
        )
    except ValueError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    except RuntimeError as exc:
        logging.error(f"Expert generation returned no tool call: {exc}")
        raise HTTPException(status_code=502, detail="Invalid AI response.") from exc

    return {
        "system_prompt": result["system_prompt"],
        "suggestion_question": result["suggestion_question"],
    }
