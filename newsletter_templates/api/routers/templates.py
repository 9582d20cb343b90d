"""Template management and preview endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status

from newsletter_templates.api.responses import create_validation_error_response, domain_error_response
from newsletter_templates.api.validation import read_validated_body, validation_middleware
from newsletter_templates.domain.quotas import QuotaError
from newsletter_templates.domain.templates import (
    DocumentKind,
    TemplateError,
    ValidationSchema,
    validate_preview_request,
)
from newsletter_templates.domain.templates.service import TemplateService
from newsletter_templates.domain.templates.transfer import TemplateTransferService
from newsletter_templates.interfaces.http.deps import (
    TenantContext,
    get_template_service,
    get_tenant_context,
    get_transfer_service,
)
from newsletter_templates.schemas import (
    PreviewResponse,
    TemplateListResponse,
    TemplateResponse,
    TemplateSummaryResponse,
)

router = APIRouter()

check_create = validation_middleware(ValidationSchema.CREATE_TEMPLATE)
check_update = validation_middleware(ValidationSchema.UPDATE_TEMPLATE)
check_preview = validation_middleware(ValidationSchema.PREVIEW_TEMPLATE)
check_export = validation_middleware(ValidationSchema.EXPORT_TEMPLATES)
check_import = validation_middleware(ValidationSchema.IMPORT_TEMPLATES)


@router.post("", response_model=TemplateResponse, status_code=status.HTTP_201_CREATED, summary="Create template")
async def create_template(
    request: Request,
    tenant: TenantContext = Depends(get_tenant_context),
    service: TemplateService = Depends(get_template_service),
):
    rejection, body = await read_validated_body(await request.body(), check_create)
    if rejection is not None:
        return rejection
    try:
        template = await service.create_template(
            tenant.tenant_id,
            tier=tenant.tier,
            name=body["name"],
            content=body["content"],
            description=body.get("description"),
            category=body.get("category"),
            tags=body.get("tags") or [],
            is_visual_mode=bool(body.get("isVisualMode", False)),
            created_by=tenant.user_id,
        )
    except (TemplateError, QuotaError) as exc:
        return domain_error_response(exc)
    return TemplateResponse.model_validate(template)


@router.get("", response_model=TemplateListResponse, summary="List templates")
async def list_templates(
    category: Optional[str] = None,
    search: Optional[str] = None,
    limit: int = Query(default=50, ge=1),
    tenant: TenantContext = Depends(get_tenant_context),
    service: TemplateService = Depends(get_template_service),
):
    templates = await service.list_templates(tenant.tenant_id, category=category, search=search, limit=limit)
    return TemplateListResponse(
        total=len(templates),
        templates=[TemplateSummaryResponse.model_validate(template) for template in templates],
    )


@router.post("/preview", response_model=PreviewResponse, summary="Preview unsaved template content")
async def preview_content(
    request: Request,
    tenant: TenantContext = Depends(get_tenant_context),
    service: TemplateService = Depends(get_template_service),
):
    rejection, body = await read_validated_body(await request.body(), check_preview)
    if rejection is not None:
        return rejection
    result = validate_preview_request(body, DocumentKind.TEMPLATE)
    content = body.get("content")
    if not isinstance(content, str) or not content:
        result.add_error("content is required", "FIELD_REQUIRED", field="content")
    if not result.is_valid:
        return create_validation_error_response(
            "Preview validation failed", [issue.to_dict() for issue in result.errors]
        )
    try:
        preview = await service.preview_template(
            tenant.tenant_id, content=content, test_data=body.get("testData")
        )
    except (TemplateError, QuotaError) as exc:
        return domain_error_response(exc)
    return PreviewResponse(**preview)


@router.post("/export", summary="Export templates with the snippets they use")
async def export_templates(
    request: Request,
    tenant: TenantContext = Depends(get_tenant_context),
    service: TemplateTransferService = Depends(get_transfer_service),
):
    rejection, body = await read_validated_body(await request.body(), check_export)
    if rejection is not None:
        return rejection
    try:
        return await service.export_templates(
            tenant.tenant_id,
            body["templateIds"],
            include_snippets=body.get("includeSnippets", True),
            format=body.get("format") or "zip",
        )
    except (TemplateError, QuotaError) as exc:
        return domain_error_response(exc)


@router.post("/import", summary="Import an exported template package")
async def import_templates(
    request: Request,
    tenant: TenantContext = Depends(get_tenant_context),
    service: TemplateTransferService = Depends(get_transfer_service),
):
    rejection, body = await read_validated_body(await request.body(), check_import)
    if rejection is not None:
        return rejection
    try:
        results = await service.import_templates(
            tenant.tenant_id,
            body.get("data"),
            tier=tenant.tier,
            format=body.get("format") or "json",
            conflict_resolution=body.get("conflictResolution") or "skip",
            preserve_ids=body.get("preserveIds", False),
            imported_by=tenant.user_id,
        )
    except (TemplateError, QuotaError) as exc:
        return domain_error_response(exc)
    return results.to_dict()


@router.get("/{template_id}", response_model=TemplateResponse, summary="Get template")
async def get_template(
    template_id: str,
    tenant: TenantContext = Depends(get_tenant_context),
    service: TemplateService = Depends(get_template_service),
):
    try:
        template = await service.get_template(tenant.tenant_id, template_id)
    except TemplateError as exc:
        return domain_error_response(exc)
    return TemplateResponse.model_validate(template)


@router.patch("/{template_id}", response_model=TemplateResponse, summary="Update template")
async def update_template(
    template_id: str,
    request: Request,
    tenant: TenantContext = Depends(get_tenant_context),
    service: TemplateService = Depends(get_template_service),
):
    rejection, body = await read_validated_body(await request.body(), check_update)
    if rejection is not None:
        return rejection
    try:
        template = await service.update_template(
            tenant.tenant_id,
            template_id,
            name=body.get("name") or None,
            content=body.get("content") or None,
            description=body.get("description"),
            category=body.get("category"),
            tags=body.get("tags"),
            is_visual_mode=body.get("isVisualMode"),
            updated_by=tenant.user_id,
        )
    except TemplateError as exc:
        return domain_error_response(exc)
    return TemplateResponse.model_validate(template)


@router.delete("/{template_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete template")
async def delete_template(
    template_id: str,
    tenant: TenantContext = Depends(get_tenant_context),
    service: TemplateService = Depends(get_template_service),
):
    try:
        await service.delete_template(tenant.tenant_id, template_id)
    except TemplateError as exc:
        return domain_error_response(exc)
    return None


@router.post("/{template_id}/preview", response_model=PreviewResponse, summary="Preview stored template")
async def preview_template(
    template_id: str,
    request: Request,
    tenant: TenantContext = Depends(get_tenant_context),
    service: TemplateService = Depends(get_template_service),
):
    rejection, body = await read_validated_body(await request.body(), check_preview)
    if rejection is not None:
        return rejection
    result = validate_preview_request(body, DocumentKind.TEMPLATE)
    if not result.is_valid:
        return create_validation_error_response(
            "Preview validation failed", [issue.to_dict() for issue in result.errors]
        )
    try:
        preview = await service.preview_template(
            tenant.tenant_id, template_id=template_id, test_data=body.get("testData")
        )
    except TemplateError as exc:
        return domain_error_response(exc)
    return PreviewResponse(**preview)
