"""Snippet management, preview and usage endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status

from newsletter_templates.api.responses import domain_error_response
from newsletter_templates.api.validation import read_validated_body, validation_middleware
from newsletter_templates.domain.quotas import QuotaError
from newsletter_templates.domain.templates import TemplateError, ValidationSchema
from newsletter_templates.domain.templates.service import SnippetService
from newsletter_templates.interfaces.http.deps import TenantContext, get_snippet_service, get_tenant_context
from newsletter_templates.schemas import (
    PreviewResponse,
    SnippetListResponse,
    SnippetResponse,
    SnippetSummaryResponse,
    SnippetUsageResponse,
)

router = APIRouter()

check_create = validation_middleware(ValidationSchema.CREATE_SNIPPET)
check_update = validation_middleware(ValidationSchema.UPDATE_SNIPPET)
check_preview = validation_middleware(ValidationSchema.PREVIEW_SNIPPET)


@router.post("", response_model=SnippetResponse, status_code=status.HTTP_201_CREATED, summary="Create snippet")
async def create_snippet(
    request: Request,
    tenant: TenantContext = Depends(get_tenant_context),
    service: SnippetService = Depends(get_snippet_service),
):
    rejection, body = await read_validated_body(await request.body(), check_create)
    if rejection is not None:
        return rejection
    try:
        snippet = await service.create_snippet(
            tenant.tenant_id,
            tier=tenant.tier,
            name=body["name"],
            content=body["content"],
            description=body.get("description"),
            parameters=body.get("parameters") or [],
            created_by=tenant.user_id,
        )
    except (TemplateError, QuotaError) as exc:
        return domain_error_response(exc)
    return SnippetResponse.model_validate(snippet)


@router.get("", response_model=SnippetListResponse, summary="List snippets")
async def list_snippets(
    search: Optional[str] = None,
    limit: int = Query(default=50, ge=1),
    tenant: TenantContext = Depends(get_tenant_context),
    service: SnippetService = Depends(get_snippet_service),
):
    snippets = await service.list_snippets(tenant.tenant_id, search=search, limit=limit)
    return SnippetListResponse(
        total=len(snippets),
        snippets=[SnippetSummaryResponse.model_validate(snippet) for snippet in snippets],
    )


@router.get("/{snippet_id}", response_model=SnippetResponse, summary="Get snippet")
async def get_snippet(
    snippet_id: str,
    tenant: TenantContext = Depends(get_tenant_context),
    service: SnippetService = Depends(get_snippet_service),
):
    try:
        snippet = await service.get_snippet(tenant.tenant_id, snippet_id)
    except TemplateError as exc:
        return domain_error_response(exc)
    return SnippetResponse.model_validate(snippet)


@router.patch("/{snippet_id}", response_model=SnippetResponse, summary="Update snippet")
async def update_snippet(
    snippet_id: str,
    request: Request,
    tenant: TenantContext = Depends(get_tenant_context),
    service: SnippetService = Depends(get_snippet_service),
):
    rejection, body = await read_validated_body(await request.body(), check_update)
    if rejection is not None:
        return rejection
    try:
        snippet = await service.update_snippet(
            tenant.tenant_id,
            snippet_id,
            name=body.get("name") or None,
            content=body.get("content") or None,
            description=body.get("description"),
            parameters=body.get("parameters"),
            updated_by=tenant.user_id,
        )
    except TemplateError as exc:
        return domain_error_response(exc)
    return SnippetResponse.model_validate(snippet)


@router.delete("/{snippet_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete snippet")
async def delete_snippet(
    snippet_id: str,
    tenant: TenantContext = Depends(get_tenant_context),
    service: SnippetService = Depends(get_snippet_service),
):
    try:
        await service.delete_snippet(tenant.tenant_id, snippet_id)
    except TemplateError as exc:
        return domain_error_response(exc)
    return None


@router.post("/{snippet_id}/preview", response_model=PreviewResponse, summary="Preview snippet")
async def preview_snippet(
    snippet_id: str,
    request: Request,
    tenant: TenantContext = Depends(get_tenant_context),
    service: SnippetService = Depends(get_snippet_service),
):
    rejection, body = await read_validated_body(await request.body(), check_preview)
    if rejection is not None:
        return rejection
    try:
        preview = await service.preview_snippet(tenant.tenant_id, snippet_id, body.get("parameters"))
    except TemplateError as exc:
        return domain_error_response(exc)
    return PreviewResponse(**preview)


@router.get("/{snippet_id}/usage", response_model=SnippetUsageResponse, summary="Templates using a snippet")
async def get_snippet_usage(
    snippet_id: str,
    tenant: TenantContext = Depends(get_tenant_context),
    service: SnippetService = Depends(get_snippet_service),
):
    try:
        usage = await service.get_snippet_usage(tenant.tenant_id, snippet_id)
    except TemplateError as exc:
        return domain_error_response(exc)
    return SnippetUsageResponse(
        snippet_id=usage.snippet_id,
        snippet_name=usage.snippet_name,
        usage_count=usage.usage_count,
        templates=usage.templates,
    )
