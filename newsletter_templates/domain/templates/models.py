"""Domain models for templates and snippets."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class DocumentKind(str, Enum):
    TEMPLATE = "template"
    SNIPPET = "snippet"


PARAMETER_TYPES = ("string", "number", "boolean")


@dataclass(slots=True)
class SnippetParameter:
    name: str
    type: str = "string"
    required: bool = False
    description: Optional[str] = None

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "SnippetParameter":
        return cls(
            name=payload.get("name") or "",
            type=payload.get("type") or "string",
            required=bool(payload.get("required", False)),
            description=payload.get("description"),
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name, "type": self.type, "required": self.required}
        if self.description is not None:
            data["description"] = self.description
        return data


@dataclass(slots=True)
class Template:
    id: str
    tenant_id: str
    name: str
    description: Optional[str]
    category: Optional[str]
    tags: list[str]
    snippets: list[str]
    is_visual_mode: bool
    storage_key: str
    version: int
    is_active: bool
    created_by: Optional[str]
    updated_by: Optional[str]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]
    content: Optional[str] = None


@dataclass(slots=True)
class Snippet:
    id: str
    tenant_id: str
    name: str
    description: Optional[str]
    parameters: list[SnippetParameter]
    storage_key: str
    version: int
    is_active: bool
    created_by: Optional[str]
    updated_by: Optional[str]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]
    content: Optional[str] = None


@dataclass(slots=True)
class SnippetUsage:
    snippet_id: str
    snippet_name: str
    templates: list[dict[str, Any]] = field(default_factory=list)

    @property
    def usage_count(self) -> int:
        return len(self.templates)
