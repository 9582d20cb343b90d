"""Application services handling template and snippet workflows."""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

from sqlalchemy.ext.asyncio import AsyncSession

from newsletter_templates.core.config import TemplateSettings, get_settings
from newsletter_templates.domain.quotas import QuotaManager, ResourceType
from newsletter_templates.infrastructure.database.repositories import (
    SqlDocumentStore,
    SqlSnippetRepository,
    SqlTemplateRepository,
)
from newsletter_templates.infrastructure.storage import (
    FileSystemBlobStore,
    snippet_storage_key,
    template_storage_key,
)

from .engine import extract_used_snippets, render_snippet, render_template
from .exceptions import (
    ContentValidationError,
    NameConflictError,
    SnippetNotFoundError,
    TemplateNotFoundError,
)
from .models import DocumentKind, Snippet, SnippetParameter, SnippetUsage, Template
from .repository import BlobStore, DocumentStore, SnippetRepository, TemplateRepository
from .request_validation import validate_preview_request
from .validators import validate_snippet, validate_template

logger = logging.getLogger(__name__)

MAX_LIST_LIMIT = 100

ParameterLike = Union[SnippetParameter, Mapping[str, Any]]


def _clamp_limit(limit: Optional[int]) -> int:
    if not limit or limit < 1:
        return 50
    return min(limit, MAX_LIST_LIMIT)


def _normalize_parameters(parameters: Optional[Iterable[ParameterLike]]) -> list[SnippetParameter]:
    return [
        parameter if isinstance(parameter, SnippetParameter) else SnippetParameter.from_dict(dict(parameter))
        for parameter in parameters or ()
    ]


@dataclass(slots=True)
class TemplateService:
    repository: TemplateRepository
    document_store: DocumentStore
    blob_store: BlobStore
    quota_manager: QuotaManager
    limits: TemplateSettings = field(default_factory=TemplateSettings)

    @classmethod
    def with_session(cls, session: AsyncSession, blob_store: Optional[BlobStore] = None) -> "TemplateService":
        document_store = SqlDocumentStore(session)
        return cls(
            repository=SqlTemplateRepository(session),
            document_store=document_store,
            blob_store=blob_store or FileSystemBlobStore.from_settings(),
            quota_manager=QuotaManager(document_store),
            limits=get_settings().templates,
        )

    def _validate(self, content: Optional[str]) -> None:
        result = validate_template(content, check_best_practices=True, limits=self.limits)
        if not result.is_valid:
            raise ContentValidationError("Template validation failed", result)
        if result.warnings:
            logger.info("Template content accepted with warnings: %s", ", ".join(result.warning_codes()))

    async def _ensure_unique_name(self, tenant_id: str, name: str, exclude_id: Optional[str] = None) -> None:
        existing = await self.repository.get_by_name(tenant_id, name)
        if existing is not None and existing.id != exclude_id:
            raise NameConflictError(DocumentKind.TEMPLATE.value, name)

    async def create_template(
        self,
        tenant_id: str,
        *,
        tier: str,
        name: str,
        content: str,
        description: Optional[str] = None,
        category: Optional[str] = None,
        tags: Sequence[str] = (),
        is_visual_mode: bool = False,
        created_by: Optional[str] = None,
        template_id: Optional[str] = None,
    ) -> Template:
        self._validate(content)
        await self._ensure_unique_name(tenant_id, name)
        await self.quota_manager.enforce_quota(tenant_id, tier, ResourceType.TEMPLATE)

        template_id = template_id or str(uuid.uuid4())
        storage_key = template_storage_key(tenant_id, template_id)
        await self.blob_store.put_blob(storage_key, content)
        try:
            template = await self.repository.create(
                tenant_id=tenant_id,
                name=name,
                description=description,
                category=category,
                tags=list(dict.fromkeys(tags)),
                snippets=extract_used_snippets(content),
                is_visual_mode=is_visual_mode,
                storage_key=storage_key,
                created_by=created_by,
                template_id=template_id,
            )
        except Exception:
            await self.blob_store.delete_blob(storage_key)
            raise
        template.content = content
        logger.info("Created template %s (%s) for tenant %s", template.id, name, tenant_id)
        return template

    async def list_templates(
        self,
        tenant_id: str,
        *,
        category: Optional[str] = None,
        search: Optional[str] = None,
        limit: Optional[int] = 50,
    ) -> list[Template]:
        return await self.repository.list_by_tenant(
            tenant_id, category=category, search=search, limit=_clamp_limit(limit)
        )

    async def get_template(self, tenant_id: str, template_id: str, *, include_content: bool = True) -> Template:
        template = await self.repository.get_by_id(tenant_id, template_id)
        if template is None:
            raise TemplateNotFoundError(template_id)
        if include_content:
            template.content = await self.blob_store.get_blob(template.storage_key)
        return template

    async def update_template(
        self,
        tenant_id: str,
        template_id: str,
        *,
        name: Optional[str] = None,
        content: Optional[str] = None,
        description: Optional[str] = None,
        category: Optional[str] = None,
        tags: Optional[Sequence[str]] = None,
        is_visual_mode: Optional[bool] = None,
        updated_by: Optional[str] = None,
    ) -> Template:
        existing = await self.get_template(tenant_id, template_id, include_content=False)
        if name is not None and name != existing.name:
            await self._ensure_unique_name(tenant_id, name, exclude_id=template_id)

        values: dict[str, Any] = {
            "name": name,
            "description": description,
            "category": category,
            "tags": list(dict.fromkeys(tags)) if tags is not None else None,
            "is_visual_mode": is_visual_mode,
            "updated_by": updated_by,
        }
        if content is not None:
            self._validate(content)
            values["snippets"] = extract_used_snippets(content)
            await self.blob_store.put_blob(existing.storage_key, content)

        updated = await self.repository.update(tenant_id, template_id, **values)
        if updated is None:
            raise TemplateNotFoundError(template_id)
        updated.content = content if content is not None else await self.blob_store.get_blob(updated.storage_key)
        return updated

    async def delete_template(self, tenant_id: str, template_id: str) -> None:
        template = await self.get_template(tenant_id, template_id, include_content=False)
        await self.repository.delete(tenant_id, template_id)
        await self.blob_store.delete_blob(template.storage_key)
        logger.info("Deleted template %s for tenant %s", template_id, tenant_id)

    async def preview_template(
        self,
        tenant_id: str,
        *,
        template_id: Optional[str] = None,
        content: Optional[str] = None,
        test_data: Optional[Mapping[str, Any]] = None,
    ) -> dict[str, Any]:
        """Render stored (``template_id``) or supplied (``content``) markup against ``test_data``."""
        if template_id is not None:
            content = (await self.get_template(tenant_id, template_id)).content
        if content is None:
            raise ValueError("Either template_id or content is required")
        html = await render_template(
            content,
            test_data or {},
            tenant_id,
            document_store=self.document_store,
            blob_store=self.blob_store,
            max_depth=self.limits.max_resolution_depth,
        )
        return {"html": html, "snippets": extract_used_snippets(content)}


@dataclass(slots=True)
class SnippetService:
    repository: SnippetRepository
    template_repository: TemplateRepository
    blob_store: BlobStore
    quota_manager: QuotaManager
    limits: TemplateSettings = field(default_factory=TemplateSettings)

    @classmethod
    def with_session(cls, session: AsyncSession, blob_store: Optional[BlobStore] = None) -> "SnippetService":
        return cls(
            repository=SqlSnippetRepository(session),
            template_repository=SqlTemplateRepository(session),
            blob_store=blob_store or FileSystemBlobStore.from_settings(),
            quota_manager=QuotaManager(SqlDocumentStore(session)),
            limits=get_settings().templates,
        )

    def _validate(self, content: Optional[str], parameters: Sequence[SnippetParameter]) -> None:
        result = validate_snippet(content, parameters, check_best_practices=True, limits=self.limits)
        if not result.is_valid:
            raise ContentValidationError("Snippet validation failed", result)
        if result.warnings:
            logger.info("Snippet content accepted with warnings: %s", ", ".join(result.warning_codes()))

    async def _ensure_unique_name(self, tenant_id: str, name: str, exclude_id: Optional[str] = None) -> None:
        existing = await self.repository.get_by_name(tenant_id, name)
        if existing is not None and existing.id != exclude_id:
            raise NameConflictError(DocumentKind.SNIPPET.value, name)

    async def create_snippet(
        self,
        tenant_id: str,
        *,
        tier: str,
        name: str,
        content: str,
        description: Optional[str] = None,
        parameters: Optional[Iterable[ParameterLike]] = None,
        created_by: Optional[str] = None,
        snippet_id: Optional[str] = None,
    ) -> Snippet:
        declared = _normalize_parameters(parameters)
        self._validate(content, declared)
        await self._ensure_unique_name(tenant_id, name)
        await self.quota_manager.enforce_quota(tenant_id, tier, ResourceType.SNIPPET)

        snippet_id = snippet_id or str(uuid.uuid4())
        storage_key = snippet_storage_key(tenant_id, snippet_id)
        await self.blob_store.put_blob(storage_key, content)
        try:
            snippet = await self.repository.create(
                tenant_id=tenant_id,
                name=name,
                description=description,
                parameters=[parameter.to_dict() for parameter in declared],
                storage_key=storage_key,
                created_by=created_by,
                snippet_id=snippet_id,
            )
        except Exception:
            await self.blob_store.delete_blob(storage_key)
            raise
        snippet.content = content
        logger.info("Created snippet %s (%s) for tenant %s", snippet.id, name, tenant_id)
        return snippet

    async def list_snippets(
        self, tenant_id: str, *, search: Optional[str] = None, limit: Optional[int] = 50
    ) -> list[Snippet]:
        return await self.repository.list_by_tenant(tenant_id, search=search, limit=_clamp_limit(limit))

    async def get_snippet(self, tenant_id: str, snippet_id: str, *, include_content: bool = True) -> Snippet:
        snippet = await self.repository.get_by_id(tenant_id, snippet_id)
        if snippet is None:
            raise SnippetNotFoundError(snippet_id)
        if include_content:
            snippet.content = await self.blob_store.get_blob(snippet.storage_key)
        return snippet

    async def update_snippet(
        self,
        tenant_id: str,
        snippet_id: str,
        *,
        name: Optional[str] = None,
        content: Optional[str] = None,
        description: Optional[str] = None,
        parameters: Optional[Iterable[ParameterLike]] = None,
        updated_by: Optional[str] = None,
    ) -> Snippet:
        existing = await self.get_snippet(tenant_id, snippet_id, include_content=content is None)
        if name is not None and name != existing.name:
            await self._ensure_unique_name(tenant_id, name, exclude_id=snippet_id)

        declared = _normalize_parameters(parameters) if parameters is not None else existing.parameters
        values: dict[str, Any] = {
            "name": name,
            "description": description,
            "parameters": [parameter.to_dict() for parameter in declared] if parameters is not None else None,
            "updated_by": updated_by,
        }
        if content is not None or parameters is not None:
            self._validate(content if content is not None else existing.content, declared)
        if content is not None:
            await self.blob_store.put_blob(existing.storage_key, content)

        updated = await self.repository.update(tenant_id, snippet_id, **values)
        if updated is None:
            raise SnippetNotFoundError(snippet_id)
        updated.content = content if content is not None else existing.content
        return updated

    async def delete_snippet(self, tenant_id: str, snippet_id: str) -> None:
        snippet = await self.get_snippet(tenant_id, snippet_id, include_content=False)
        await self.repository.delete(tenant_id, snippet_id)
        await self.blob_store.delete_blob(snippet.storage_key)
        logger.info("Deleted snippet %s for tenant %s", snippet_id, tenant_id)

    async def preview_snippet(
        self, tenant_id: str, snippet_id: str, parameters: Optional[Mapping[str, Any]] = None
    ) -> dict[str, Any]:
        snippet = await self.get_snippet(tenant_id, snippet_id)
        values = dict(parameters or {})
        result = validate_preview_request({"parameters": values}, DocumentKind.SNIPPET, snippet.parameters)
        if not result.is_valid:
            raise ContentValidationError("Preview validation failed", result)
        html = render_snippet(snippet.content or "", values)
        return {"html": html, "parameters": [parameter.to_dict() for parameter in snippet.parameters]}

    async def get_snippet_usage(self, tenant_id: str, snippet_id: str) -> SnippetUsage:
        """Active templates of the tenant whose content references the snippet."""
        snippet = await self.get_snippet(tenant_id, snippet_id, include_content=False)
        templates = await self.template_repository.list_by_tenant(tenant_id, limit=None)
        references = await asyncio.gather(*(self._template_references(template) for template in templates))

        usage = SnippetUsage(snippet_id=snippet.id, snippet_name=snippet.name)
        for template, names in zip(templates, references):
            if snippet.name in names:
                usage.templates.append(
                    {
                        "id": template.id,
                        "name": template.name,
                        "category": template.category,
                        "updatedAt": template.updated_at.isoformat() if template.updated_at else None,
                    }
                )
        return usage

    async def _template_references(self, template: Template) -> list[str]:
        try:
            content = await self.blob_store.get_blob(template.storage_key)
        except Exception as exc:
            logger.warning("Falling back to stored snippet list for template %s: %s", template.id, exc)
            return template.snippets
        return extract_used_snippets(content)
