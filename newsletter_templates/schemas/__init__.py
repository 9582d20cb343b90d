"""Pydantic schemas used across the project."""
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)


class SnippetParameterSchema(CamelModel):
    name: str
    type: str = "string"
    required: bool = False
    description: Optional[str] = None


class TemplateSummaryResponse(CamelModel):
    id: str
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    snippets: list[str] = Field(default_factory=list)
    is_visual_mode: bool = False
    version: int = 1
    is_active: bool = True
    created_by: Optional[str] = None
    updated_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TemplateResponse(TemplateSummaryResponse):
    content: Optional[str] = None


class TemplateListResponse(CamelModel):
    total: int
    templates: list[TemplateSummaryResponse]


class SnippetSummaryResponse(CamelModel):
    id: str
    name: str
    description: Optional[str] = None
    parameters: list[SnippetParameterSchema] = Field(default_factory=list)
    version: int = 1
    is_active: bool = True
    created_by: Optional[str] = None
    updated_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SnippetResponse(SnippetSummaryResponse):
    content: Optional[str] = None


class SnippetListResponse(CamelModel):
    total: int
    snippets: list[SnippetSummaryResponse]


class SnippetUsageResponse(CamelModel):
    snippet_id: str
    snippet_name: str
    usage_count: int
    templates: list[dict[str, Any]]


class PreviewResponse(CamelModel):
    html: str
    snippets: list[str] = Field(default_factory=list)
    parameters: list[SnippetParameterSchema] = Field(default_factory=list)
