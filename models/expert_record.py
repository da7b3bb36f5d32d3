from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional


@dataclass
class ExpertRecord:
    """In-memory representation of a row in the experts table.

    Attributes:
        id: Primary key (None for records not yet inserted).
        slug: URL-safe unique key.
        name: Display name of the expert persona.
        agent_name: Name the assistant uses for itself.
        description: Optional short description shown in pickers.
        system_prompt: Behavior contract sent to the model.
        suggestion_question: Optional starter question shown to the user.
        sort_order: Position in the expert list (ties broken by created_at).
        created_at: ISO-8601 UTC timestamp of insertion.
    """

    id: Optional[str]
    slug: str
    name: str
    agent_name: str
    description: Optional[str] = None
    system_prompt: str = ""
    suggestion_question: Optional[str] = None
    sort_order: int = 0
    created_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExpertRecord":
        return cls(
            id=data.get("id"),
            slug=data.get("slug") or "",
            name=data.get("name") or "",
            agent_name=data.get("agent_name") or "",
            description=data.get("description"),
            system_prompt=data.get("system_prompt") or "",
            suggestion_question=data.get("suggestion_question"),
            sort_order=int(data.get("sort_order") or 0),
            created_at=data.get("created_at"),
        )
