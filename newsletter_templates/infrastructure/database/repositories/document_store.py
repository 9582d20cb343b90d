"""Tenant-scoped document lookups backed by the templates and snippets tables."""

from __future__ import annotations

import asyncio
from typing import Any, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from newsletter_templates.db.models import Snippet as SnippetModel
from newsletter_templates.db.models import Template as TemplateModel
from newsletter_templates.domain.common.repository import load_json_list
from newsletter_templates.domain.templates.models import DocumentKind

_MODELS = {
    DocumentKind.TEMPLATE: TemplateModel,
    DocumentKind.SNIPPET: SnippetModel,
}


class SqlDocumentStore:
    """Implements the ``DocumentStore`` protocol over active rows only.

    Statements run one at a time on the shared session, so lookups fanned out
    with ``asyncio.gather`` stay valid.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._lock = asyncio.Lock()

    async def _execute(self, stmt: Any) -> Any:
        async with self._lock:
            return await self._session.execute(stmt)

    async def get_document(self, tenant_id: str, kind: DocumentKind, document_id: str) -> Optional[dict[str, Any]]:
        model = _MODELS[DocumentKind(kind)]
        stmt = (
            select(model)
            .where(model.tenant_id == tenant_id)
            .where(model.id == document_id)
            .where(model.is_active.is_(True))
        )
        result = await self._execute(stmt)
        row = result.scalars().first()
        return _to_document(row, DocumentKind(kind)) if row else None

    async def count_documents(self, tenant_id: str, kind: DocumentKind) -> int:
        model = _MODELS[DocumentKind(kind)]
        stmt = (
            select(func.count())
            .select_from(model)
            .where(model.tenant_id == tenant_id)
            .where(model.is_active.is_(True))
        )
        result = await self._execute(stmt)
        return int(result.scalar_one())

    async def query_document_by_name(
        self, tenant_id: str, kind: DocumentKind, name: str
    ) -> Optional[dict[str, Any]]:
        model = _MODELS[DocumentKind(kind)]
        stmt = (
            select(model)
            .where(model.tenant_id == tenant_id)
            .where(model.name == name)
            .where(model.is_active.is_(True))
            .order_by(model.created_at.desc())
            .limit(1)
        )
        result = await self._execute(stmt)
        row = result.scalars().first()
        return _to_document(row, DocumentKind(kind)) if row else None


def _to_document(row: Any, kind: DocumentKind) -> dict[str, Any]:
    document: dict[str, Any] = {
        "id": row.id,
        "tenant_id": row.tenant_id,
        "kind": kind.value,
        "name": row.name,
        "description": row.description,
        "storage_key": row.storage_key,
        "version": row.version,
        "created_at": row.created_at,
        "updated_at": row.updated_at,
    }
    if kind is DocumentKind.TEMPLATE:
        document["category"] = row.category
        document["tags"] = load_json_list(row.tags)
        document["snippets"] = load_json_list(row.snippets)
        document["is_visual_mode"] = bool(row.is_visual_mode)
    else:
        document["parameters"] = load_json_list(row.parameters)
    return document
